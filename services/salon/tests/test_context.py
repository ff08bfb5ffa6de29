"""Tests for per-tenant wiring across request-scoped contexts."""

from datetime import date, time

from app.context import COMPLETIONS_TOPIC, SETTINGS_TOPIC


def _client(ctx):
    result = ctx.clients.create({"full_name": "María García", "phone": "6641234567"})
    assert result.success, result.error
    return result.data


def _appointment(ctx, client_id, price):
    result = ctx.appointments.create(
        {"client_id": client_id, "date": date(2026, 11, 20), "time": time(10, 0), "total_price": price}
    )
    assert result.success, result.error
    return result.data


class TestSharedBuses:
    def test_later_contexts_reuse_the_tenant_buses(self, contexts, tenant):
        first = contexts.build(tenant)
        second = contexts.build(tenant)

        assert first.appointments.completions is second.appointments.completions
        assert first.settings.changes is second.settings.changes
        assert first.themes.changes is second.themes.changes
        assert first.staff.changes is second.staff.changes
        assert second.appointments.completions is contexts.registry.get(COMPLETIONS_TOPIC, tenant.id)

    def test_completion_in_a_later_context_issues_a_coupon(self, contexts, tenant):
        first = contexts.build(tenant)
        assert first.rewards.update_settings({"spendingThreshold": 100}).success

        second = contexts.build(tenant)
        client = _client(second)
        appointment = _appointment(second, client.id, 500)
        assert second.appointments.update_status(appointment.id, "completed")

        [coupon] = first.rewards.get_client_available_coupons(client.id)
        assert coupon.client_id == client.id
        assert second.clients.get_by_id(client.id).rewards_earned == 1

    def test_registry_subscriber_sees_saves_from_any_context(self, contexts, tenant):
        received = []
        contexts.registry.get(SETTINGS_TOPIC, tenant.id).subscribe(received.append)

        contexts.build(tenant).settings.save({"salonMotto": "Relájate"})
        contexts.build(tenant).settings.save({"salonMotto": "Renuévate"})

        assert [s.salon_motto for s in received] == ["Relájate", "Renuévate"]

    def test_staff_written_in_one_context_is_visible_in_another(self, contexts, tenant):
        first = contexts.build(tenant)
        assert first.staff.get_all() == []

        second = contexts.build(tenant)
        hired = second.staff.create({"name": "Isabella", "specialties": ["masajes"]}).data

        assert [s.id for s in first.staff.get_all()] == [hired.id]


class TestRelease:
    def test_release_detaches_the_tenant_listeners(self, contexts, tenant):
        ctx = contexts.build(tenant)
        completions = ctx.appointments.completions
        assert len(completions) > 0

        contexts.release(tenant.id)

        assert len(completions) == 0
        assert contexts.build(tenant).appointments.completions is not completions
