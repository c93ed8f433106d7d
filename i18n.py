# i18n.py
import json
from pathlib import Path
from typing import Any, Optional

from flask import current_app, has_request_context, request

LOCALES = ("zh-TW", "en")
DEFAULT_LOCALE = "zh-TW"
LOCALE_COOKIE = "locale"

_LOCALE_DIR = Path(__file__).parent / "locales"


class Localizer:
    def __init__(self, lang: Optional[str] = None):
        self.lang = lang if lang in LOCALES else DEFAULT_LOCALE
        self._messages: Optional[dict] = None

    def _catalogue(self) -> dict:
        if self._messages is None:
            with open(_LOCALE_DIR / f"{self.lang}.json", encoding="utf-8") as file:
                self._messages = json.load(file)
        return self._messages

    def get(self, key: str, **kwargs: Any) -> str:
        ans: Any = self._catalogue()
        for part in key.split("."):
            if not isinstance(ans, dict) or part not in ans:
                raise KeyError(f"Key {key} is not found in {self.lang}")
            ans = ans[part]

        if not isinstance(ans, str):
            raise KeyError(f"Key {key} is not full")

        return ans.format(**kwargs)

    def __call__(self, key: str, **kwargs: Any) -> str:
        return self.get(key, **kwargs)


_localizers: dict[str, Localizer] = {}


def get_localizer(lang: Optional[str]) -> Localizer:
    lang = lang if lang in LOCALES else DEFAULT_LOCALE
    if lang not in _localizers:
        _localizers[lang] = Localizer(lang)
    return _localizers[lang]


def get_locale() -> str:
    """Locale of the current request: ?lang=, then the locale cookie, then Accept-Language."""
    default = DEFAULT_LOCALE
    if not has_request_context():
        return default

    default = current_app.config.get("DEFAULT_LOCALE", DEFAULT_LOCALE)
    for candidate in (request.args.get("lang"), request.cookies.get(LOCALE_COOKIE)):
        if candidate in LOCALES:
            return candidate

    return request.accept_languages.best_match(LOCALES, default=default)


def translate(key: str, lang: Optional[str] = None, **kwargs: Any) -> str:
    return get_localizer(lang or get_locale())(key, **kwargs)
