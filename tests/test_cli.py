"""Tests for the composition root."""

from conftest import FakeGateway
from kubedsh import cli
from kubedsh.lib.config import KubedshConfig


class TestCreateContext:
    def test_seeds_table_from_cluster(self):
        gateway = FakeGateway({"ctxA": {"web": "bin:web"}})
        context = cli.create_context(KubedshConfig(), gateway)
        assert [d.id for d in context.dpt.dump("")] == ["web"]
        assert context.orchestrator.dpt is context.dpt
        assert context.watchdog is not None

    def test_discovery_failure_starts_empty(self, caplog):
        gateway = FakeGateway({"ctxA": {"web": "bin:web"}})
        gateway.failures["list-contexts"] = "no cluster"
        context = cli.create_context(KubedshConfig(), gateway)
        assert len(context.dpt) == 0
        assert "empty process table" in caplog.text

    def test_background_loops(self):
        config = KubedshConfig(gc_interval=12, watchdog_interval=3)
        context = cli.create_context(config, FakeGateway())
        loops = cli.create_background_loops(context, config)
        assert [(l.name, l.interval) for l in loops] == [
            ("dpt-reconciler", 12), ("reload-watchdog", 3)
        ]
        assert not any(l.running for l in loops)


class TestMain:
    def test_script_mode(self, tmp_path, monkeypatch, capsys):
        gateway = FakeGateway()
        monkeypatch.setattr(cli, "KubectlGateway", lambda binary: gateway)
        monkeypatch.setattr(cli, "load_config", lambda path: KubedshConfig())
        script = tmp_path / "demo.kubedsh"
        script.write_text("myserver &\nps\n")
        assert cli.main([str(script)]) == 0
        assert "myserver" in capsys.readouterr().out

    def test_script_failure(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cli, "KubectlGateway", lambda binary: FakeGateway())
        monkeypatch.setattr(cli, "load_config", lambda path: KubedshConfig())
        script = tmp_path / "demo.kubedsh"
        script.write_text("kill ghost\n")
        assert cli.main([str(script)]) == 1

    def test_invalid_config(self, monkeypatch):
        def bad_config(path):
            raise ValueError("gc_interval must be positive")
        monkeypatch.setattr(cli, "load_config", bad_config)
        assert cli.main(["--quiet"]) == 2
