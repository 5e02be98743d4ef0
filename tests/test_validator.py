"""Package name grammar, length limit and injection strings."""

import pytest

from conduit.components.validator import (
    MAX_PACKAGE_NAME_LENGTH,
    is_valid_package_name,
    validate_package_name,
)
from conduit.exceptions import ConduitError, InvalidPackageName


class TestValidNames:
    @pytest.mark.parametrize("name", [
        "vendor/package",
        "jordanpartridge/github-zero",
        "dev/package.name",
        "org/package_name",
        "a/b",
        "acme2/widgets-v2",
    ])
    def test_accepted_unchanged(self, name):
        assert validate_package_name(name) == name
        assert is_valid_package_name(name)

    def test_exactly_max_length_passes(self):
        name = "v/" + "a" * (MAX_PACKAGE_NAME_LENGTH - 2)
        assert len(name) == 100
        assert validate_package_name(name) == name


class TestRejectedNames:
    @pytest.mark.parametrize("name", [
        "evil; rm -rf /",
        "package && echo pwned",
        "package`whoami`",
        "package$(id)",
        "vendor/package; ls",
        "vendor/pack|age",
        "vendor/package\n",
    ])
    def test_shell_metacharacters_rejected(self, name):
        with pytest.raises(InvalidPackageName):
            validate_package_name(name)

    @pytest.mark.parametrize("name", [
        "Vendor/Package",
        "vendor",
        "vendor/package/extra",
        "/package",
        "vendor/",
        "-vendor/package",
        "vendor/package-",
        "vendor/pack--age",
        "vendor/pack..age",
        "../etc/passwd",
    ])
    def test_grammar_violations_rejected(self, name):
        assert not is_valid_package_name(name)

    def test_one_over_max_length_fails(self):
        name = "v/" + "a" * (MAX_PACKAGE_NAME_LENGTH - 1)
        assert len(name) == 101
        with pytest.raises(InvalidPackageName) as exc_info:
            validate_package_name(name)
        assert "101" in exc_info.value.reason

    def test_empty_string_fails(self):
        with pytest.raises(InvalidPackageName) as exc_info:
            validate_package_name("")
        assert exc_info.value.reason == "name is empty"

    @pytest.mark.parametrize("value", [None, 42, ["vendor/package"]])
    def test_non_string_fails(self, value):
        with pytest.raises(InvalidPackageName):
            validate_package_name(value)

    def test_error_carries_input_and_is_conduit_error(self):
        with pytest.raises(ConduitError) as exc_info:
            validate_package_name("package$(id)")
        err = exc_info.value
        assert isinstance(err, InvalidPackageName)
        assert err.input == "package$(id)"
        assert "vendor/package" in str(err)
