from __future__ import annotations

import logging
import random
from typing import Any, Protocol

import requests

from errors import MalformedUpstreamPayload, UpstreamFetchFailure
from parsing import parse_string_array
from settings import DEFAULT_MODEL, DEFAULT_TIMEOUT, MAX_WORD_COUNT, MIN_WORD_COUNT, Settings


logger = logging.getLogger(__name__)

MISTRAL_CHAT_URL = "https://api.mistral.ai/v1/chat/completions"
USER_AGENT = "spelling-typer/0.1 (python requests)"
SUGGESTION_COUNT = 5
MAX_SUMMARY_WORDS = 10

SAMPLE_WORDS = [
    "apple", "banana", "cherry", "date", "elderberry", "fig", "grape", "honeydew",
    "kiwi", "lemon", "mango", "nectarine", "orange", "papaya", "quince", "raspberry",
    "strawberry", "tangerine", "ugli", "vanilla", "watermelon", "xigua", "yam", "zucchini",
    "ability", "believe", "context", "develop", "example", "function", "generate", "however",
    "implement", "javascript", "keyboard", "language", "module", "navigate", "object", "practice",
]


class WordSource(Protocol):
    def fetch_words(self, count: int) -> list[str]: ...

    def fetch_suggestions(self, errors: dict[str, Any]) -> list[str]: ...


def _check_count(count: int) -> int:
    if not MIN_WORD_COUNT <= count <= MAX_WORD_COUNT:
        raise ValueError(f"count must be between {MIN_WORD_COUNT} and {MAX_WORD_COUNT}")
    return count


def _string_list(value: Any) -> list[str] | None:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return value
    return None


def _error_details(response: requests.Response) -> str:
    details = f"HTTP error! status: {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        return details
    if isinstance(data, dict):
        return data.get("details") or data.get("error") or details
    return details


def word_prompt(count: int) -> str:
    return (
        f"Generate a list of exactly {count} common English words suitable for a "
        "spelling practice application.\n"
        "Focus on words with moderate difficulty, typically between 5 and 12 letters "
        "long. Avoid proper nouns.\n"
        "Return ONLY the words as a JSON formatted list (an array of strings) in your "
        'response. Example: ["word1", "word2", ...]'
    )


def summarize_errors(errors: dict[str, Any]) -> str:
    words = list(errors)
    if len(words) > MAX_SUMMARY_WORDS:
        listed = ", ".join(words[:MAX_SUMMARY_WORDS])
        return f"User frequently misspelled words like: {listed}, and others."
    return f"User made spelling errors on words including: {', '.join(words)}."


def suggestion_prompt(errors: dict[str, Any], count: int = SUGGESTION_COUNT) -> str:
    return (
        "Based on the following information about a user's recent spelling errors:\n"
        f'"{summarize_errors(errors)}"\n\n'
        f"Suggest exactly {count} relevant English words for spelling practice. The "
        "suggestions should target spelling patterns, rules, or difficulties related "
        "to the types of errors the user might be making (e.g., vowel sounds, double "
        "letters, suffixes, common confusions evident from the errors). Prioritize "
        "moderately common words.\n\n"
        "Return ONLY the suggested words as a JSON formatted list (an array of strings) "
        'in your response. Example: ["suggestion1", "suggestion2", ...]'
    )


class ProxyWordSource:
    """Talks to the word proxy (``/get-word`` and ``/get-suggestions``)."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def fetch_words(self, count: int) -> list[str]:
        _check_count(count)
        logger.info("Fetching %d words from %s/get-word", count, self.base_url)
        try:
            response = requests.get(
                f"{self.base_url}/get-word",
                params={"count": count},
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )
            if not response.ok:
                raise UpstreamFetchFailure(
                    f"Failed to fetch words: {_error_details(response)}"
                )
            data = response.json()
        except requests.RequestException as exc:
            raise UpstreamFetchFailure(f"Failed to fetch words: {exc}") from exc
        except ValueError as exc:
            raise MalformedUpstreamPayload(f"Failed to fetch words: {exc}") from exc

        words = _string_list(data.get("words")) if isinstance(data, dict) else None
        if not words:
            raise MalformedUpstreamPayload(
                "Failed to fetch words: Invalid or empty words array received from API"
            )
        logger.info("Words received: %d", len(words))
        return words

    def fetch_suggestions(self, errors: dict[str, Any]) -> list[str]:
        if not errors:
            return []
        try:
            response = requests.post(
                f"{self.base_url}/get-suggestions",
                json={"errors": errors},
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT},
            )
            if not response.ok:
                logger.warning("Suggestion request failed: %s", _error_details(response))
                return []
            data = response.json()
        except (requests.RequestException, ValueError):
            logger.warning("Suggestion request failed", exc_info=True)
            return []
        suggestions = _string_list(data.get("suggestions")) if isinstance(data, dict) else None
        return suggestions or []


class MistralWordSource:
    """Asks the Mistral chat API directly, without a proxy in between."""

    def __init__(
        self, api_key: str, model: str = DEFAULT_MODEL, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def complete(self, prompt: str) -> str:
        logger.info("Requesting completion from Mistral model %s", self.model)
        try:
            response = requests.post(
                MISTRAL_CHAT_URL,
                json={"model": self.model, "messages": [{"role": "user", "content": prompt}]},
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "User-Agent": USER_AGENT,
                    "Accept": "application/json",
                },
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise UpstreamFetchFailure(f"Failed to fetch words from AI service: {exc}") from exc
        except ValueError as exc:
            raise MalformedUpstreamPayload(f"Invalid response from AI service: {exc}") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedUpstreamPayload("Invalid response structure from Mistral API") from exc
        logger.debug("Raw Mistral response: %s", content)
        return content if isinstance(content, str) else ""

    def fetch_words(self, count: int) -> list[str]:
        _check_count(count)
        words = parse_string_array(self.complete(word_prompt(count)))
        if len(words) < count * 0.8:
            logger.warning("Mistral returned fewer words (%d) than requested (%d)", len(words), count)
        return words[:count]

    def fetch_suggestions(self, errors: dict[str, Any]) -> list[str]:
        if not errors:
            return []
        try:
            suggestions = parse_string_array(self.complete(suggestion_prompt(errors)))
        except UpstreamFetchFailure:
            logger.warning("Could not get suggestions from Mistral", exc_info=True)
            return []
        return suggestions[:SUGGESTION_COUNT]


class SampleWordSource:
    """Offline source used when no service is configured."""

    def __init__(self, words: list[str] | None = None, rng: random.Random | None = None) -> None:
        self.words = list(words or SAMPLE_WORDS)
        self.rng = rng or random.Random()

    def fetch_words(self, count: int) -> list[str]:
        _check_count(count)
        return self.rng.sample(self.words, min(count, len(self.words)))

    def fetch_suggestions(self, errors: dict[str, Any]) -> list[str]:
        # Offline, the best practice words are the ones already missed most.
        def _count(word: str) -> int:
            entry = errors[word]
            return int(entry.get("count", 0)) if isinstance(entry, dict) else 0

        return sorted(errors, key=lambda w: (-_count(w), w))[:SUGGESTION_COUNT]


def build_source(settings: Settings) -> WordSource:
    kind = settings.source_kind()
    if kind == "proxy":
        return ProxyWordSource(settings.api_base_url, timeout=settings.request_timeout)
    if kind == "mistral":
        return MistralWordSource(
            settings.mistral_api_key, settings.mistral_model, timeout=settings.request_timeout
        )
    logger.info("No word service configured, using sample words")
    return SampleWordSource()
