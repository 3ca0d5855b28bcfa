from click.testing import CliRunner

import sentryinstaller.cli as cli_module


def _patch_installer(monkeypatch, captured, exit_code=0):
    class FakeInstaller:
        SUPPORTED_RUNTIMES = cli_module.SentryInstaller.SUPPORTED_RUNTIMES

        def __init__(self, settings):
            captured["settings"] = settings

        def run(self):
            return exit_code

    monkeypatch.setattr(cli_module, "SentryInstaller", FakeInstaller)


def test_cli_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / "installer.yml"
    config_file.write_text(
        "runtime: docker\n" "sentry_version: '21.1.0'\n" "min_ram_mb: 4000\n" "log_file: from-config.log\n",
        encoding="utf-8",
    )
    captured = {}
    _patch_installer(monkeypatch, captured)
    monkeypatch.delenv("CI", raising=False)
    monkeypatch.delenv("SENTRY_IMAGE", raising=False)
    monkeypatch.delenv("SENTRY_VERSION", raising=False)

    runner = CliRunner()
    result = runner.invoke(
        cli_module.main,
        ["--config", str(config_file), "--runtime", "podman", "--min-ram", "3000", "--no-require-sse42"],
    )

    assert result.exit_code == 0
    settings = captured["settings"]
    assert settings.runtime == "podman"
    assert settings.sentry_version == "21.1.0"
    assert settings.min_ram_mb == 3000
    assert settings.require_sse42 is False
    assert settings.log_file == "from-config.log"
    assert settings.non_interactive is False


def test_cli_uses_default_config_file_when_present(tmp_path, monkeypatch):
    (tmp_path / ".sentryinstaller.yml").write_text("compose_file: stack.yml\n", encoding="utf-8")
    captured = {}
    _patch_installer(monkeypatch, captured)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, [])

    assert result.exit_code == 0
    assert captured["settings"].compose_file == "stack.yml"
    assert captured["settings"].workdir == str(tmp_path)
    assert captured["settings"].log_file.startswith("sentry_install_log-")


def test_cli_reads_image_override_and_ci_from_environment(tmp_path, monkeypatch):
    captured = {}
    _patch_installer(monkeypatch, captured)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CI", "true")
    monkeypatch.setenv("SENTRY_IMAGE", "registry.local/sentry:custom")

    result = CliRunner().invoke(cli_module.main, [])

    assert result.exit_code == 0
    assert captured["settings"].non_interactive is True
    assert captured["settings"].sentry_image == "registry.local/sentry:custom"


def test_cli_propagates_installer_exit_code(tmp_path, monkeypatch):
    captured = {}
    _patch_installer(monkeypatch, captured, exit_code=143)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, [])

    assert result.exit_code == 143


def test_cli_rejects_unknown_config_keys(tmp_path, monkeypatch):
    config_file = tmp_path / "installer.yml"
    config_file.write_text("runtimes: docker\n", encoding="utf-8")
    _patch_installer(monkeypatch, {})

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file)])

    assert result.exit_code != 0
    assert "Unknown configuration keys: runtimes" in result.output


def test_cli_rejects_unsupported_runtime():
    result = CliRunner().invoke(cli_module.main, ["--runtime", "lxc"])

    assert result.exit_code == 2
