from __future__ import annotations

from argparse import Namespace

import pytest

from main import _providers


@pytest.mark.parametrize(
    ("provider", "pubmed", "expected"),
    [
        (None, False, ["google"]),
        (None, True, ["google", "pubmed"]),
        ("brave", True, ["brave", "pubmed"]),
        ("tavily", False, ["tavily"]),
    ],
)
def test_pubmed_flag_adds_to_the_web_provider(settings, provider, pubmed, expected):
    assert _providers(Namespace(provider=provider, pubmed=pubmed), settings) == expected


def test_default_provider_comes_from_settings(settings):
    brave_default = settings.model_copy(update={"default_provider": "brave"})
    assert _providers(Namespace(provider=None, pubmed=True), brave_default) == ["brave", "pubmed"]
