"""ServiceHookDetector over a fake vendor tree."""

import pytest

from conduit.components.detector import ServiceHookDetector, extract_command_names

from conftest import make_package, php_command


class TestDetectHooks:
    def test_reads_laravel_providers(self, vendor_dir):
        make_package(vendor_dir, "acme/widgets", providers=["Acme\\WidgetsProvider", "Acme\\WidgetsProvider"])
        assert ServiceHookDetector(vendor_dir).detect_hooks("acme/widgets") == ["Acme\\WidgetsProvider"]

    def test_missing_package_is_empty(self, vendor_dir):
        assert ServiceHookDetector(vendor_dir).detect_hooks("acme/ghost") == []

    def test_invalid_json_is_empty(self, vendor_dir):
        make_package(vendor_dir, "acme/broken", manifest_text="{not json")
        assert ServiceHookDetector(vendor_dir).detect_hooks("acme/broken") == []

    def test_missing_section_is_empty(self, vendor_dir):
        make_package(vendor_dir, "acme/plain")
        assert ServiceHookDetector(vendor_dir).detect_hooks("acme/plain") == []

    def test_non_list_providers_is_empty(self, vendor_dir):
        make_package(vendor_dir, "acme/odd", providers="Acme\\OddProvider")
        assert ServiceHookDetector(vendor_dir).detect_hooks("acme/odd") == []

    def test_invalid_name_never_touches_filesystem(self, vendor_dir):
        detector = ServiceHookDetector(vendor_dir)
        assert detector.package_root("../../etc/passwd") is None
        assert detector.detect_hooks("../../etc/passwd") == []


class TestDeclaredMetadata:
    def test_declared_commands_and_env_vars(self, vendor_dir):
        make_package(vendor_dir, "acme/widgets", conduit_extra={
            "commands": ["widgets:sync", " widgets:sync ", 3],
            "env_vars": ["WIDGETS_TOKEN"],
        })
        detector = ServiceHookDetector(vendor_dir)
        assert detector.detect_declared_commands("acme/widgets") == ["widgets:sync"]
        assert detector.detect_env_vars("acme/widgets") == ["WIDGETS_TOKEN"]

    def test_absent_declarations(self, vendor_dir):
        make_package(vendor_dir, "acme/widgets", providers=["Acme\\WidgetsProvider"])
        detector = ServiceHookDetector(vendor_dir)
        assert detector.detect_declared_commands("acme/widgets") == []
        assert detector.detect_env_vars("acme/widgets") == []


class TestDetectCommands:
    def test_scans_package_root(self, vendor_dir):
        make_package(
            vendor_dir,
            "acme/widgets",
            providers=["Acme\\WidgetsProvider"],
            command_files={"src/Commands/RunCommand.php": php_command("widgets:run {--force}")},
        )
        detector = ServiceHookDetector(vendor_dir)
        hooks = detector.detect_hooks("acme/widgets")
        assert detector.detect_commands(hooks, "acme/widgets") == ["widgets:run"]

    def test_scans_namespace_derived_root(self, vendor_dir):
        make_package(
            vendor_dir,
            "acme/widgets",
            command_files={
                "app/Commands/A.php": php_command("widgets:a"),
                "Commands/B.php": php_command("widgets:b"),
            },
        )
        commands = ServiceHookDetector(vendor_dir).detect_commands(["Acme\\Widgets\\WidgetsServiceProvider"])
        assert sorted(commands) == ["widgets:a", "widgets:b"]

    def test_deduplicates_across_hooks(self, vendor_dir):
        make_package(
            vendor_dir,
            "acme/widgets",
            command_files={"src/Commands/RunCommand.php": php_command("widgets:run")},
        )
        commands = ServiceHookDetector(vendor_dir).detect_commands(
            ["Acme\\Widgets\\One", "Acme\\Widgets\\Two"], "acme/widgets"
        )
        assert commands == ["widgets:run"]

    def test_short_hook_without_package_finds_nothing(self, vendor_dir):
        assert ServiceHookDetector(vendor_dir).detect_commands(["WidgetsProvider"]) == []

    def test_ignores_non_php_files(self, vendor_dir):
        make_package(
            vendor_dir,
            "acme/widgets",
            command_files={"src/Commands/README.md": php_command("widgets:nope")},
        )
        assert ServiceHookDetector(vendor_dir).detect_commands(["X\\Y"], "acme/widgets") == []

    def test_one_failing_hook_does_not_stop_others(self, vendor_dir, monkeypatch):
        make_package(
            vendor_dir,
            "acme/widgets",
            command_files={"src/Commands/RunCommand.php": php_command("widgets:run")},
        )
        detector = ServiceHookDetector(vendor_dir)
        original = detector._roots_for_hook

        def flaky(hook, package_root):
            if hook == "Bad\\Hook":
                raise RuntimeError("boom")
            return original(hook, package_root)

        monkeypatch.setattr(detector, "_roots_for_hook", flaky)
        assert detector.detect_commands(["Bad\\Hook", "Acme\\Widgets\\Provider"]) == ["widgets:run"]


class TestExtractCommandNames:
    @pytest.mark.parametrize("source,expected", [
        ("protected $signature = 'widgets:run {name}';", ["widgets:run"]),
        ('public $signature = "widgets:list";', ["widgets:list"]),
        ("protected static $signature='widgets:sync';", ["widgets:sync"]),
        ("@Command('widgets:annotated')", ["widgets:annotated"]),
        ("private $signature = 'hidden:cmd';", []),
        ("protected $description = 'widgets:run';", []),
    ])
    def test_patterns(self, source, expected):
        assert extract_command_names(source) == expected
