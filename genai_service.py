"""
Product copywriting helpers backed by Gemini through the google-genai client.
Single-shot requests, no streaming, no retry.
"""
import json
import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from google import genai
from google.genai import errors, types

logger = logging.getLogger(__name__)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "20"))

DESCRIPTION_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "description": types.Schema(type=types.Type.STRING),
        "tags": types.Schema(type=types.Type.ARRAY, items=types.Schema(type=types.Type.STRING)),
    },
    required=["description", "tags"],
)

_client: Optional[genai.Client] = None


class GenerationError(Exception):
    pass


def get_client() -> genai.Client:
    global _client
    if _client is None:
        if not GEMINI_API_KEY:
            raise GenerationError("GEMINI_API_KEY not set")
        _client = genai.Client(
            api_key=GEMINI_API_KEY,
            http_options=types.HttpOptions(timeout=int(GEMINI_TIMEOUT * 1000)),
        )
    return _client


def generate_text(prompt: str, response_schema: Optional[types.Schema] = None) -> str:
    config = None
    if response_schema is not None:
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=response_schema,
        )
    try:
        response = get_client().models.generate_content(model=GEMINI_MODEL, contents=prompt, config=config)
    except (errors.APIError, httpx.HTTPError) as e:
        raise GenerationError(str(e)) from e
    if not response.text:
        raise GenerationError("No response from AI")
    return response.text


def generate_product_description(product_name: str, category: str, keywords: str) -> Dict[str, Any]:
    prompt = f"""
      Agis comme un expert en marketing B2B.
      Génère une description de produit attrayante et commerciale (environ 50-80 mots) en français pour un produit nommé "{product_name}" dans la catégorie "{category}".
      Mots-clés fournis par l'utilisateur : "{keywords}".

      Génère également une liste de 3 à 5 tags pertinents.
    """
    try:
        text = generate_text(prompt, DESCRIPTION_SCHEMA)
        result = json.loads(text)
    except (GenerationError, ValueError) as e:
        logger.error("Error generating description: %s", e)
        raise GenerationError(str(e)) from e
    if not isinstance(result, dict) or "description" not in result:
        raise GenerationError("Malformed AI response")
    return {"description": str(result["description"]), "tags": [str(t) for t in result.get("tags", [])]}


def analyze_market_trends(products: List[Any]) -> str:
    products_list = "\n".join(f"{p.name} ({p.category}) - {p.price} FCFA" for p in products)
    prompt = f"""
      Analyse la liste de produits suivante et donne un bref aperçu (en 2-3 phrases) de la diversité du catalogue et une suggestion de catégorie manquante qui pourrait être rentable.

      Liste:
      {products_list}
    """
    try:
        return generate_text(prompt)
    except GenerationError as e:
        logger.error("Error analyzing trends: %s", e)
        return "Erreur lors de l'analyse des tendances."


def draft_supplier_inquiry(product_name: str, supplier_name: str, intent: str) -> str:
    prompt = f"""
      Rédige un message professionnel court et poli (email) de la part d'un client intéressé par le produit "{product_name}" vendu par "{supplier_name}".
      Intention spécifique du client : "{intent}".
      Le ton doit être formel et professionnel. Le message doit être prêt à l'envoi.
    """
    try:
        return generate_text(prompt)
    except GenerationError as e:
        logger.error("Error drafting inquiry: %s", e)
        return "Erreur lors de la génération du message."
