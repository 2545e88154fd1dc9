from shadowit.core.error_handlers import validation_details
from shadowit.main import create_app


class TestValidationDetails:
    def test_field_path_drops_the_request_part(self):
        [detail] = validation_details(
            [{"type": "greater_than", "loc": ("body", "organization_id"), "msg": "too small"}]
        )

        assert detail.field == "organization_id"
        assert detail.code == "greater_than"
        assert detail.message == "too small"

    def test_body_level_error_has_no_field(self):
        [detail] = validation_details([{"type": "missing", "loc": ("body",), "msg": "Field required"}])

        assert detail.field is None


class TestCreateApp:
    def test_routes_are_mounted(self):
        paths = {route.path for route in create_app().routes}

        assert "/health" in paths
        assert "/api/v1/cleanup/stale-relationships" in paths
        assert "/api/v1/sync/start" in paths
