import logging
from typing import Iterator

import requests
from django.conf import settings

from monitor.exceptions import ChatGatewayError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are HealthPulse AI Assistant, the medical assistant of the HealthPulse IoT-based healthcare monitoring system.

YOUR CAPABILITIES:
1. Answer medical and healthcare questions: symptoms, diseases, treatments, medications, procedures, anatomy, first aid, nutrition and mental health
2. Provide information about the HealthPulse system and website
3. Give health advice and wellness tips
4. Explain medical terminology in simple terms

MEDICAL KNOWLEDGE GUIDELINES:
- For symptoms: describe possible causes, when to see a doctor, and home remedies if applicable
- For diseases: explain causes, symptoms, treatments, and prevention
- For medications: explain uses, dosages and side effects, and recommend consulting a doctor or pharmacist
- For procedures: explain what to expect, preparation and recovery
- Add a brief disclaimer for serious conditions: "Please consult a healthcare professional for personalized advice"

ABOUT HEALTHPULSE:
- Real-time IoT-based healthcare monitoring system for hospitals
- Continuous patient vital monitoring using IoT sensors (heart rate, temperature, SpO2, blood pressure)
- Cloud connectivity and automated emergency alerts
- Located at Government General Hospital (GGH), Ayodyanagar, Kakinada - 533001

CONTACT INFO:
- Phone: +91 6302614346, +91 80744 03635
- Email: emergencypulsemonitoring@gmail.com
- WhatsApp: +91 7893254003

RESPONSE STYLE:
- Keep responses SHORT and CLEAR, 2-4 sentences for simple questions
- Use bullet points for lists
- Be friendly and empathetic
- For complex medical topics, give a concise summary first, then key details
""".strip()

GATEWAY_ERRORS = {
    429: 'Rate limit exceeded. Please try again in a moment.',
    402: 'Service temporarily unavailable. Please try again later.',
}


def build_payload(messages: list[dict]) -> dict:
    return {
        'model': settings.LLM_MODEL,
        'messages': [{'role': 'system', 'content': SYSTEM_PROMPT}, *messages],
        'stream': True,
    }


def open_completion_stream(messages: list[dict]) -> requests.Response:
    """Start a streaming completion; the caller owns (and must close) the response."""
    if not settings.LLM_GATEWAY_API_KEY:
        raise ChatGatewayError('LLM gateway API key is not configured', 500)
    try:
        r = requests.post(
            settings.LLM_GATEWAY_URL,
            json=build_payload(messages),
            headers={'Authorization': f'Bearer {settings.LLM_GATEWAY_API_KEY}'},
            stream=True,
            timeout=settings.LLM_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error('LLM gateway unreachable: %s', e)
        raise ChatGatewayError('AI service error', 500) from e

    if r.status_code != 200:
        body = r.text[:500]
        r.close()
        if r.status_code in GATEWAY_ERRORS:
            logger.warning('LLM gateway refused request: %s', r.status_code)
            raise ChatGatewayError(GATEWAY_ERRORS[r.status_code], r.status_code)
        logger.error('LLM gateway error %s: %s', r.status_code, body)
        raise ChatGatewayError('AI service error', 500)
    return r


def relay(upstream: requests.Response, chunk_size: int = 1024) -> Iterator[bytes]:
    """Yield the upstream SSE body untouched, closing it when iteration stops."""
    try:
        for chunk in upstream.iter_content(chunk_size=chunk_size):
            if chunk:
                yield chunk
    except requests.RequestException as e:
        logger.warning('LLM stream interrupted: %s', e)
    finally:
        upstream.close()
