from typing import Dict, Optional

from app.models.tenant import BusinessTypeConfig, DefaultService

BUSINESS_TYPES: Dict[str, BusinessTypeConfig] = {
    config.id: config
    for config in (
        BusinessTypeConfig(
            id="salon",
            name="Salón de Belleza",
            description="Servicios completos de belleza y cuidado personal",
            default_services=[
                DefaultService(name="Corte y Peinado", category="servicios-cabello", duration=45, price=430),
                DefaultService(name="Tinte Completo", category="servicios-cabello", duration=120, price=600),
                DefaultService(name="Manicure Clásica", category="servicios-unas", duration=30, price=250),
                DefaultService(name="Limpieza Facial", category="tratamientos-faciales", duration=60, price=400),
            ],
            primary_color="#ec4899",
            secondary_color="#8b5cf6",
        ),
        BusinessTypeConfig(
            id="barberia",
            name="Barbería",
            description="Servicios especializados en cortes masculinos y cuidado de barba",
            default_services=[
                DefaultService(name="Corte Clásico", category="servicios-cabello", duration=30, price=200),
                DefaultService(name="Corte + Barba", category="servicios-cabello", duration=45, price=300),
                DefaultService(name="Afeitado Tradicional", category="servicios-cabello", duration=25, price=150),
                DefaultService(name="Arreglo de Cejas", category="tratamientos-faciales", duration=15, price=80),
            ],
            primary_color="#374151",
            secondary_color="#f59e0b",
        ),
        BusinessTypeConfig(
            id="spa",
            name="Spa",
            description="Centro de relajación y bienestar con tratamientos corporales",
            default_services=[
                DefaultService(name="Masaje Relajante", category="masajes", duration=60, price=750),
                DefaultService(name="Facial Anti-edad", category="tratamientos-faciales", duration=75, price=550),
                DefaultService(name="Exfoliación Corporal", category="tratamientos-corporales", duration=45, price=350),
                DefaultService(name="Tratamiento Reafirmante", category="tratamientos-corporales", duration=90, price=450),
            ],
            primary_color="#059669",
            secondary_color="#06b6d4",
        ),
        BusinessTypeConfig(
            id="unas",
            name="Centro de Uñas",
            description="Especialistas en manicure, pedicure y nail art",
            default_services=[
                DefaultService(name="Manicure Clásica", category="servicios-unas", duration=30, price=250),
                DefaultService(name="Pedicure Spa", category="servicios-unas", duration=45, price=450),
                DefaultService(name="Uñas de Gel", category="servicios-unas", duration=60, price=550),
                DefaultService(name="Nail Art", category="servicios-unas", duration=90, price=700),
            ],
            primary_color="#8b5cf6",
            secondary_color="#ec4899",
        ),
        BusinessTypeConfig(
            id="centro-bienestar",
            name="Centro de Bienestar",
            description="Servicios integrales de salud, belleza y relajación",
            default_services=[
                DefaultService(name="Masaje Terapéutico", category="masajes", duration=60, price=600),
                DefaultService(name="Tratamiento Facial", category="tratamientos-faciales", duration=60, price=400),
                DefaultService(name="Depilación Láser", category="tratamientos-corporales", duration=30, price=300),
                DefaultService(name="Consulta Nutricional", category="tratamientos-corporales", duration=45, price=250),
            ],
            primary_color="#10b981",
            secondary_color="#3b82f6",
        ),
    )
}


def get_business_type(business_type: str) -> Optional[BusinessTypeConfig]:
    return BUSINESS_TYPES.get(business_type)
