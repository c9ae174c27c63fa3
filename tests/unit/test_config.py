"""Environment-dependent settings defaults."""

from documind.core.config import Settings, crypto_simulation_default


class TestCryptoSimulationDefault:
    """Simulated crypto payments must be opted into outside local development."""

    def test_on_in_local_environment(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "local")
        monkeypatch.delenv("CRYPTO_SIMULATION_ENABLED", raising=False)

        assert crypto_simulation_default() is True
        assert Settings().CRYPTO_SIMULATION_ENABLED is True

    def test_off_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.delenv("CRYPTO_SIMULATION_ENABLED", raising=False)

        assert crypto_simulation_default() is False
        assert Settings().CRYPTO_SIMULATION_ENABLED is False

    def test_off_when_environment_is_unrecognised(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "staging")
        monkeypatch.delenv("CRYPTO_SIMULATION_ENABLED", raising=False)

        assert Settings().CRYPTO_SIMULATION_ENABLED is False

    def test_explicit_opt_in(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("CRYPTO_SIMULATION_ENABLED", "true")

        assert Settings().CRYPTO_SIMULATION_ENABLED is True

    def test_explicit_opt_out_locally(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "local")
        monkeypatch.setenv("CRYPTO_SIMULATION_ENABLED", "false")

        assert Settings().CRYPTO_SIMULATION_ENABLED is False
