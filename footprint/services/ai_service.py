import json
import logging
from typing import Any, Dict, List, Optional

from footprint.services.emissions import round_half_up
from footprint.settings import Settings, settings

logger = logging.getLogger(__name__)

# ------------------------------
# Fallback Recommendations
# ------------------------------

def fallback_recommendations(summary: Dict[str, Any]) -> Dict[str, Any]:
    """Rule-based tips keyed off the per-category subtotals."""
    recommendations: List[Dict[str, str]] = []
    by_category = summary.get("by_category") or {}
    transport = by_category.get("transport", 0)
    energy = by_category.get("energy", 0)
    food = by_category.get("food", 0)

    if transport > 10:
        recommendations.append({
            "category": "Transport",
            "tip": "Consider carpooling or using public transport. Switching to public transit can reduce your transport emissions by up to 65%.",
            "potential_saving": f"{int(round_half_up(transport * 0.5, 0))} kg CO2",
        })
        recommendations.append({
            "category": "Transport",
            "tip": "For short trips under 5km, try cycling or walking instead of driving.",
            "potential_saving": "0.5-2 kg CO2 per trip",
        })

    if energy > 5:
        recommendations.append({
            "category": "Energy",
            "tip": "Switch to LED bulbs and turn off lights when not in use. This can reduce home electricity by 10-20%.",
            "potential_saving": f"{int(round_half_up(energy * 0.15, 0))} kg CO2",
        })
        recommendations.append({
            "category": "Energy",
            "tip": "Lower your thermostat by 1-2°C in winter and use fans instead of AC when possible.",
            "potential_saving": "3-5% energy reduction",
        })

    if food > 5:
        recommendations.append({
            "category": "Food",
            "tip": "Try having one or two meatless days per week. Replacing beef with plant-based meals can save up to 5kg CO2 per meal.",
            "potential_saving": "10-20 kg CO2 per week",
        })
        recommendations.append({
            "category": "Food",
            "tip": "Reduce food waste by planning meals and storing food properly. About 6% of global emissions come from food waste.",
            "potential_saving": "1-2 kg CO2 per week",
        })

    if not recommendations:
        recommendations.append({
            "category": "General",
            "tip": "Great job tracking your carbon footprint! Keep logging activities to identify patterns and areas for improvement.",
            "potential_saving": "Knowledge is power!",
        })
        recommendations.append({
            "category": "General",
            "tip": "Consider offsetting your emissions by supporting reforestation projects or renewable energy initiatives.",
            "potential_saving": "Variable",
        })

    return {
        "success": True,
        "recommendations": recommendations,
        "source": "rule-based",
        "message": "Showing rule-based suggestions based on your data.",
    }

# ------------------------------
# Gemini
# ------------------------------

NO_KEY_CHAT_REPLY = (
    "I'm your carbon footprint assistant! To get AI-powered responses, please configure "
    "your Gemini API key. In the meantime, I can tell you that the average person's carbon "
    "footprint is about 4-8 tonnes CO2 per year. Reducing transport and food emissions "
    "usually has the biggest impact!"
)

FAILED_CHAT_REPLY = (
    "I can help you reduce your carbon footprint! Here are some quick tips: Walk or bike "
    "for short trips, switch to LED bulbs, eat more plant-based meals, and reduce "
    "single-use plastics. Would you like more specific advice?"
)


def gemini_enabled(config: Optional[Settings] = None) -> bool:
    return bool((config or settings).gemini_api_key)


def call_gemini(prompt: str, temperature: float = 0.7, max_output_tokens: int = 1024,
                config: Optional[Settings] = None) -> Optional[str]:
    """Returns the model text, "" for an empty reply, or None if the call failed."""
    config = config or settings
    try:
        from google import genai
        client = genai.Client(api_key=config.gemini_api_key)
        resp = client.models.generate_content(
            model=config.gemini_model,
            contents=prompt,
            config={"temperature": temperature, "max_output_tokens": max_output_tokens},
        )
        return (resp.text if hasattr(resp, "text") else "") or ""
    except Exception:
        logger.exception("Gemini call failed")
        return None

# ------------------------------
# Prompts
# ------------------------------

def build_recommendation_prompt(summary: Dict[str, Any], question: Optional[str] = None) -> str:
    if question:
        return (
            f"Based on this carbon emission data: {json.dumps(summary, default=str)}\n\n"
            f"User question: {question}\n\n"
            "Provide helpful, actionable advice."
        )
    return f"""You are an expert environmental consultant. Analyze this carbon footprint data and provide personalized recommendations:

{json.dumps(summary, indent=2, default=str)}

Provide:
1. Top 3 areas for improvement based on the data
2. Specific actionable tips for each area
3. Estimated CO2 savings if tips are followed

Be encouraging, specific, and practical. Format your response clearly with sections."""


def build_chat_prompt(message: str, context: Dict[str, Any]) -> str:
    context_info = ""
    if context:
        context_info = (
            f"\n\nUser's emission context (last 30 days): "
            f"Total: {float(context.get('total') or 0):.2f} kg CO2. "
            f"Categories: {json.dumps(context.get('by_category') or {})}"
        )
    return f"""You are a friendly and knowledgeable carbon footprint assistant. You help users understand their environmental impact and provide practical tips.

Be conversational, encouraging, and specific with advice. Keep responses concise (2-3 paragraphs max).
{context_info}

User message: {message}"""

# ------------------------------
# Main Entry
# ------------------------------

def generate_recommendations(summary: Dict[str, Any], question: Optional[str] = None,
                             config: Optional[Settings] = None) -> Dict[str, Any]:
    if not gemini_enabled(config):
        return fallback_recommendations(summary)

    text = call_gemini(build_recommendation_prompt(summary, question), config=config)
    if text:
        return {"success": True, "recommendations": text, "source": "ai"}
    return fallback_recommendations(summary)


def chat(message: str, context: Optional[Dict[str, Any]] = None,
         config: Optional[Settings] = None) -> Dict[str, Any]:
    if not gemini_enabled(config):
        return {"success": True, "response": NO_KEY_CHAT_REPLY, "source": "fallback"}

    text = call_gemini(build_chat_prompt(message, context or {}), max_output_tokens=500, config=config)
    if text is None:
        return {"success": True, "response": FAILED_CHAT_REPLY, "source": "fallback"}
    if not text:
        return {
            "success": False,
            "response": "I couldn't generate a response. Please try again.",
            "source": "error",
        }
    return {"success": True, "response": text, "source": "ai"}
