# src/reconciler/utils/url_utils.py
import re
import logging
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

LOCALE_RE = re.compile(r"^[a-z]{2}(?:[-_][a-z]{2,4})?$", re.IGNORECASE)
HTML_SUFFIX_RE = re.compile(r"\.html$", re.IGNORECASE)
AMP_SUFFIX_RE = re.compile(r"\.amp$", re.IGNORECASE)


class UrlUtils:
    """A collection of static methods for canonical URL derivation and inspection."""

    @staticmethod
    def canonical_origin(origin: str, require_www: bool = True) -> str:
        """
        Returns the site origin in its canonical form: https scheme, lowercase host,
        'www.' prefix when required, no trailing slash.
        """
        value = (origin or "").strip()
        if "://" not in value:
            value = f"https://{value}"
        parsed = urlparse(value)
        host = (parsed.netloc or "").lower().rstrip(".")
        if require_www and host and not host.startswith("www."):
            host = f"www.{host}"
        return f"https://{host}"

    @staticmethod
    def canonical_host(origin: str, require_www: bool = True) -> str:
        """Host part of the canonical origin, e.g. 'www.example.com'."""
        return urlparse(UrlUtils.canonical_origin(origin, require_www)).netloc

    @staticmethod
    def _segments(relative_path: str):
        path = (relative_path or "").replace("\\", "/").strip()
        return [s for s in path.split("/") if s and s != "."]

    @staticmethod
    def _drop_amp_segments(segments, is_dir: bool = False):
        out = []
        skip_locale = False
        # In directory form every segment is a directory, so a trailing amp/ goes too.
        last = len(segments) if is_dir else len(segments) - 1
        for i, seg in enumerate(segments):
            if skip_locale:
                skip_locale = False
                # Only a directory can be the locale; 'amp/go.html' keeps its page.
                if i < last and LOCALE_RE.match(seg):
                    continue
            if seg.lower() == "amp" and i < last:
                skip_locale = True
                continue
            out.append(seg)
        return out

    @staticmethod
    def to_canonical_url(relative_path: str, origin: str, require_www: bool = True) -> str:
        """
        Converts a file path relative to the scan root into its canonical absolute URL.

        blog/post.html              -> https://www.example.com/blog/post
        blog/index.html             -> https://www.example.com/blog/
        amp/en/blog/post.amp.html   -> https://www.example.com/blog/post
        index.html                  -> https://www.example.com/

        Never raises; odd inputs still map to a well-formed URL.
        """
        base = UrlUtils.canonical_origin(origin, require_www)
        raw = (relative_path or "").replace("\\", "/").strip()
        is_dir = raw.endswith("/")

        segments = UrlUtils._segments(raw)
        if segments and not is_dir:
            last = HTML_SUFFIX_RE.sub("", segments[-1])
            last = AMP_SUFFIX_RE.sub("", last)
            segments[-1] = last

        # AMP variants live under amp/{locale}/ and canonicalize to the plain page.
        segments = UrlUtils._drop_amp_segments(segments, is_dir)
        # Stray '.html' fragments in directory names would leak into the URL.
        segments = [s.replace(".html", "").replace(".HTML", "") for s in segments]
        segments = [s for s in segments if s]

        if segments and segments[-1].lower() == "index":
            segments.pop()
            is_dir = True

        if not segments:
            return f"{base}/"
        path = "/".join(segments)
        return f"{base}/{path}/" if is_dir else f"{base}/{path}"

    @staticmethod
    def strip_origin(url: str, origin: str, require_www: bool = True) -> str:
        """
        Inverse of the prefixing step of to_canonical_url: returns the path relative
        to the origin ('' for the root, 'blog/' for a directory page).
        """
        base = UrlUtils.canonical_origin(origin, require_www)
        value = url or ""
        if value.lower().startswith(base.lower()):
            value = value[len(base):]
        else:
            parsed = urlparse(value)
            value = parsed.path if parsed.scheme or parsed.netloc else value
        return value.lstrip("/")

    @staticmethod
    def extract_locale(relative_path: str) -> Optional[str]:
        """Returns the locale of an 'amp/{locale}/...' or 'i18n/{locale}/...' path, else None."""
        segments = UrlUtils._segments(relative_path)
        if len(segments) >= 2 and segments[0].lower() in ("amp", "i18n") and LOCALE_RE.match(segments[1]):
            return segments[1].lower()
        return None

    @staticmethod
    def is_amp_path(path_or_url: str) -> bool:
        """True if the path or URL carries an AMP segment ('/amp/') or an '.amp' page suffix."""
        if not path_or_url:
            return False
        parsed = urlparse(path_or_url)
        path = parsed.path if parsed.scheme or parsed.netloc else path_or_url
        segments = UrlUtils._segments(path)
        if any(s.lower() == "amp" for s in segments):
            return True
        if segments:
            last = HTML_SUFFIX_RE.sub("", segments[-1])
            return bool(AMP_SUFFIX_RE.search(last))
        return False

    @staticmethod
    def page_id_for(relative_path: str, full: bool = False) -> str:
        """
        Page-config key of a file: the filename stem ('faq.html' -> 'faq').
        With full=True the directory is kept ('blog/post.html' -> 'blog/post').
        """
        segments = UrlUtils._segments(relative_path)
        if not segments:
            return ""
        segments[-1] = HTML_SUFFIX_RE.sub("", segments[-1])
        return "/".join(segments) if full else segments[-1]
