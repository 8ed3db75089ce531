from typing import Optional

import requests

from screening.utils.exceptions import ExternalServiceError


def ollama_chat(
    base_url: str,
    model: str,
    system: str,
    prompt: str,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    timeout: Optional[float] = None,
) -> str:
    """Single non-streaming chat completion; returns the assistant message text."""
    options = {}
    if temperature is not None:
        options["temperature"] = temperature
    if max_tokens:
        options["num_predict"] = max_tokens

    try:
        resp = requests.post(
            f"{base_url.rstrip('/')}/api/chat",
            json={
                "model": model,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                "options": options,
                "stream": False,  # important
            },
            timeout=timeout,
        )
        resp.raise_for_status()
        data = resp.json()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise ExternalServiceError(f"LLM request failed: {e}", service_name="ollama",
                                   status_code=status, cause=e) from e
    except (requests.RequestException, ValueError) as e:
        raise ExternalServiceError(f"LLM request failed: {e}", service_name="ollama", cause=e) from e

    message = data.get("message") if isinstance(data, dict) else None
    if not isinstance(message, dict):
        raise ExternalServiceError(f"Unexpected LLM response shape: {str(data)[:200]}", service_name="ollama")
    content = message.get("content")
    return content if isinstance(content, str) else ""
