import json
from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors

import genai_service
from seed_data import seed_products


class FakeModels:
    def __init__(self, text=None, exc=None):
        self.text = text
        self.exc = exc
        self.calls = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.exc is not None:
            raise self.exc
        return SimpleNamespace(text=self.text)


@pytest.fixture
def gemini(monkeypatch):
    def install(text=None, exc=None):
        models = FakeModels(text, exc)
        monkeypatch.setattr(genai_service, "_client", SimpleNamespace(models=models))
        return models

    return install


def test_product_description_parses_json(gemini):
    body = {"description": "Un riz parfumé de qualité.", "tags": ["riz", "import", "cuisine"]}
    models = gemini(json.dumps(body))

    result = genai_service.generate_product_description("Riz", "Alimentation", "parfumé")

    assert result == body
    call = models.calls[0]
    assert call["model"] == genai_service.GEMINI_MODEL
    assert call["config"].response_mime_type == "application/json"
    assert call["config"].response_schema.required == ["description", "tags"]
    assert '"Riz"' in call["contents"]


def test_product_description_raises_on_bad_payload(gemini):
    gemini("pas du json")
    with pytest.raises(genai_service.GenerationError):
        genai_service.generate_product_description("Riz", "Alimentation", "")


def test_product_description_raises_on_api_error(gemini):
    gemini(exc=errors.ServerError(500, {"error": {"code": 500, "message": "boom", "status": "INTERNAL"}}))
    with pytest.raises(genai_service.GenerationError):
        genai_service.generate_product_description("Riz", "Alimentation", "")


def test_market_trends_lists_products(gemini):
    models = gemini("Catalogue varié.")

    assert genai_service.analyze_market_trends(seed_products()) == "Catalogue varié."
    assert "Panier de Légumes Bio (Alimentation) - 25000 FCFA" in models.calls[0]["contents"]
    assert models.calls[0]["config"] is None


def test_market_trends_falls_back_on_network_error(gemini):
    gemini(exc=httpx.ConnectError("down"))
    assert genai_service.analyze_market_trends([]) == "Erreur lors de l'analyse des tendances."


def test_inquiry_falls_back_on_empty_answer(gemini):
    gemini(None)
    assert genai_service.draft_supplier_inquiry("Riz", "BioFerme", "prix de gros") == (
        "Erreur lors de la génération du message."
    )


def test_missing_api_key_falls_back(monkeypatch):
    monkeypatch.setattr(genai_service, "_client", None)
    monkeypatch.setattr(genai_service, "GEMINI_API_KEY", "")
    assert genai_service.draft_supplier_inquiry("Riz", "BioFerme", "devis") == (
        "Erreur lors de la génération du message."
    )
