"""
Tests unitarios para connection_strings.py.

Verifica el orden de candidatos, la omision de estrategias que no aplican
al perfil y el enmascarado de passwords.
"""
from __future__ import annotations

import pytest

from odbc_bridge.domain.entities.connection_profile import ConnectionProfile
from odbc_bridge.infrastructure.odbc.connection_strings import (
    DEFAULT_STRATEGIES,
    SQL_ANYWHERE_DEFAULT_PORT,
    build_candidates,
    strategies_from_names,
)


DRIVER = "SQL Anywhere 17"


def _profile(**overrides) -> ConnectionProfile:
    data = {
        "id": 1,
        "name": "contabil",
        "driver": DRIVER,
        "host": "srv01",
        "database": "contabil",
        "username": "dba",
        "password": "s3cret",
    }
    data.update(overrides)
    return ConnectionProfile(**data)


class TestBuildCandidates:
    """Tests para build_candidates()."""

    def test_host_profile_skips_dsn_and_explicit_strategies(self) -> None:
        """Verifica que sin DSN ni connection string se omiten esas estrategias."""
        candidates = build_candidates(_profile(), DEFAULT_STRATEGIES, DRIVER)

        strategies = [c.strategy for c in candidates]
        assert "connection_string" not in strategies
        assert "dsn" not in strategies
        assert "provider_dsn" not in strategies
        assert strategies[0] == "provider"

    def test_ordinals_are_contiguous(self) -> None:
        """Verifica que los ordinales empiezan en 1 y no tienen huecos."""
        candidates = build_candidates(_profile(), DEFAULT_STRATEGIES, DRIVER)

        assert [c.ordinal for c in candidates] == list(range(1, len(candidates) + 1))

    def test_explicit_connection_string_goes_first(self) -> None:
        """Verifica que la connection string explicita es el primer candidato."""
        profile = _profile(connection_string="DSN=Legacy;UID=dba;PWD=x;")

        candidates = build_candidates(profile, DEFAULT_STRATEGIES, DRIVER)

        assert candidates[0].strategy == "connection_string"
        assert candidates[0].connection_string == "DSN=Legacy;UID=dba;PWD=x;"

    def test_dsn_candidates_follow_explicit_string(self) -> None:
        """Verifica el orden connection_string, dsn, provider, provider_dsn."""
        profile = _profile(connection_string="DSN=Legacy;", dsn="Legacy")

        candidates = build_candidates(profile, DEFAULT_STRATEGIES, DRIVER)

        assert [c.strategy for c in candidates[:4]] == [
            "connection_string",
            "dsn",
            "provider",
            "provider_dsn",
        ]
        assert candidates[2].connection_string.startswith("Provider=MSDASQL;DRIVER={SQL Anywhere 17}")

    def test_empty_driver_uses_default(self) -> None:
        """Verifica que un driver vacio usa el driver por defecto."""
        candidates = build_candidates(_profile(driver=""), DEFAULT_STRATEGIES, "Custom ODBC")

        assert "DRIVER={Custom ODBC}" in candidates[0].connection_string

    def test_commlinks_uses_default_port(self) -> None:
        """Verifica que CommLinks usa el puerto 2638 cuando el perfil no tiene puerto."""
        candidates = build_candidates(_profile(), DEFAULT_STRATEGIES, DRIVER)
        commlinks = next(c for c in candidates if c.strategy == "commlinks")

        assert f"CommLinks=tcpip(HOST=srv01;PORT={SQL_ANYWHERE_DEFAULT_PORT});" in commlinks.connection_string

    def test_sql_anywhere_strategy_only_for_sql_anywhere_drivers(self) -> None:
        """Verifica que la estrategia sql_anywhere no aplica a otros drivers."""
        candidates = build_candidates(_profile(driver="PostgreSQL Unicode"), DEFAULT_STRATEGIES, DRIVER)

        assert "sql_anywhere" not in [c.strategy for c in candidates]

    def test_port_included_when_configured(self) -> None:
        """Verifica que el puerto del perfil aparece en driver_server."""
        candidates = build_candidates(_profile(port=49152), DEFAULT_STRATEGIES, DRIVER)
        driver_server = next(c for c in candidates if c.strategy == "driver_server")

        assert "PORT=49152;" in driver_server.connection_string

    def test_values_with_separators_are_braced(self) -> None:
        """Verifica que valores con ';' se escapan con llaves."""
        candidates = build_candidates(_profile(password="pa;ss"), DEFAULT_STRATEGIES, DRIVER)

        assert "PWD={pa;ss};" in candidates[0].connection_string

    def test_extra_params_are_appended(self) -> None:
        """Verifica que los parametros extra se agregan al final."""
        candidates = build_candidates(_profile(extra_params={"CHARSET": "UTF8"}), DEFAULT_STRATEGIES, DRIVER)

        assert candidates[0].connection_string.endswith("CHARSET=UTF8;")

    def test_profile_without_host_dsn_or_string_has_no_candidates(self) -> None:
        """Verifica que un perfil sin datos de destino no genera candidatos."""
        candidates = build_candidates(_profile(host=""), DEFAULT_STRATEGIES, DRIVER)

        assert candidates == []


class TestMaskedCandidate:
    """Tests para el enmascarado de candidatos."""

    def test_masked_hides_password(self) -> None:
        """Verifica que la version enmascarada no contiene la password."""
        candidates = build_candidates(_profile(), DEFAULT_STRATEGIES, DRIVER)

        for candidate in candidates:
            assert "s3cret" not in candidate.masked
            assert "PWD=***" in candidate.masked

    def test_masked_hides_braced_password(self) -> None:
        """Verifica que una password entre llaves se enmascara completa."""
        candidates = build_candidates(_profile(password="a;b}c"), DEFAULT_STRATEGIES, DRIVER)

        assert "a;b" not in candidates[0].masked


class TestStrategiesFromNames:
    """Tests para strategies_from_names()."""

    def test_empty_list_returns_default_order(self) -> None:
        """Verifica que una lista vacia retorna el orden por defecto."""
        assert [s.name for s in strategies_from_names([])] == [s.name for s in DEFAULT_STRATEGIES]

    def test_custom_order(self) -> None:
        """Verifica que se respeta el orden configurado."""
        strategies = strategies_from_names(["sql_anywhere", "dsn"])

        assert [s.name for s in strategies] == ["sql_anywhere", "dsn"]

    def test_unknown_name_raises(self) -> None:
        """Verifica que un nombre desconocido falla con ValueError."""
        with pytest.raises(ValueError, match="desconocidas"):
            strategies_from_names(["dsn", "magic"])
