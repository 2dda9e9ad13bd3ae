"""Tests for the plugin wire types."""

from infrakit_instance.spi import Description, Spec


class TestSpec:
    """Tests for Spec parsing."""

    def test_wire_names(self) -> None:
        spec = Spec.model_validate(
            {"Properties": {"Size": 1}, "Tags": {"env": "prod"}, "LogicalID": "db-1"}
        )

        assert spec.properties == {"Size": 1}
        assert spec.tags == {"env": "prod"}
        assert spec.logical_id == "db-1"

    def test_absent_fields(self) -> None:
        spec = Spec.model_validate({})

        assert spec.properties is None
        assert spec.tags == {}
        assert spec.logical_id is None

    def test_null_tags(self) -> None:
        assert Spec.model_validate({"Tags": None}).tags == {}

    def test_dump_uses_wire_names(self) -> None:
        spec = Spec(properties=[1, 2], logical_id="x")

        assert spec.model_dump(by_alias=True) == {
            "Properties": [1, 2],
            "Tags": {},
            "LogicalID": "x",
        }


class TestDescription:
    """Tests for Description."""

    def test_defaults(self) -> None:
        description = Description(id="vol-1")

        assert description.logical_id is None
        assert description.tags == {}
        assert description.model_dump(by_alias=True) == {
            "ID": "vol-1",
            "LogicalID": None,
            "Tags": {},
        }
