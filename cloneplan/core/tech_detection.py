"""Technology fingerprinting for a target site.

Fetches the page once (one retry, linear backoff) and matches response
headers, cookies and HTML against a signature table. Returns None on any
failure so callers can continue with AI-only output.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import httpx

from .models import DetectedTechnology, TechDetectionResult, utcnow
from .url_utils import is_fetchable_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
MAX_RETRIES = 1
RETRY_DELAY_SECONDS = 1.0
USER_AGENT = "Mozilla/5.0 (compatible; cloneplan-techdetect/0.1)"


@dataclass(frozen=True)
class Signature:
    name: str
    categories: Tuple[str, ...]
    html: Tuple[str, ...] = ()
    headers: Tuple[Tuple[str, str], ...] = ()  # (header name, value regex)
    cookies: Tuple[str, ...] = ()
    confidence: int = 100
    website: Optional[str] = None


SIGNATURES: Tuple[Signature, ...] = (
    # Site builders / CMS
    Signature("WordPress", ("CMS", "Blogs"), html=(r"/wp-content/", r"/wp-includes/", r'name="generator" content="WordPress'), website="https://wordpress.org"),
    Signature("Shopify", ("Ecommerce",), html=(r"cdn\.shopify\.com", r"Shopify\.theme"), headers=(("x-shopid", r".*"),), website="https://shopify.com"),
    Signature("Webflow", ("Page builders",), html=(r"webflow\.(?:js|css|com)", r'data-wf-page='), website="https://webflow.com"),
    Signature("Wix", ("Page builders",), html=(r"static\.wixstatic\.com", r"wix-bolt"), headers=(("x-wix-request-id", r".*"),), website="https://wix.com"),
    Signature("Squarespace", ("Page builders",), html=(r"static1\.squarespace\.com", r"Squarespace\.Constants"), website="https://squarespace.com"),
    # Frontend
    Signature("React", ("JavaScript frameworks",), html=(r"data-reactroot", r"react(?:\.production)?(?:\.min)?\.js", r"__REACT_DEVTOOLS"), confidence=80, website="https://react.dev"),
    Signature("Next.js", ("JavaScript frameworks", "Web frameworks"), html=(r"/_next/static/", r"__NEXT_DATA__"), headers=(("x-powered-by", r"Next\.js"),), website="https://nextjs.org"),
    Signature("Vue.js", ("JavaScript frameworks",), html=(r"data-v-[0-9a-f]{8}", r"vue(?:\.runtime)?(?:\.min)?\.js"), confidence=80, website="https://vuejs.org"),
    Signature("Nuxt.js", ("JavaScript frameworks", "Web frameworks"), html=(r"/_nuxt/", r"__NUXT__"), website="https://nuxt.com"),
    Signature("Angular", ("JavaScript frameworks",), html=(r"ng-version=", r"ng-app"), website="https://angular.io"),
    Signature("Svelte", ("JavaScript frameworks",), html=(r"svelte-[a-z0-9]{6}",), confidence=70, website="https://svelte.dev"),
    Signature("Gatsby", ("Static site generator",), html=(r'id="___gatsby"',), website="https://gatsbyjs.com"),
    Signature("jQuery", ("JavaScript libraries",), html=(r"jquery(?:[.-]\d[\d.]*)?(?:\.min)?\.js",), website="https://jquery.com"),
    Signature("Bootstrap", ("UI frameworks",), html=(r"bootstrap(?:\.min)?\.(?:css|js)",), website="https://getbootstrap.com"),
    # Backend
    Signature("PHP", ("Programming languages",), headers=(("x-powered-by", r"PHP"),), cookies=("PHPSESSID",), website="https://php.net"),
    Signature("Express", ("Web frameworks",), headers=(("x-powered-by", r"Express"),), website="https://expressjs.com"),
    Signature("ASP.NET", ("Web frameworks",), headers=(("x-powered-by", r"ASP\.NET"), ("x-aspnet-version", r".*")), cookies=("ASP.NET_SessionId",), website="https://dotnet.microsoft.com"),
    Signature("Django", ("Web frameworks",), cookies=("csrftoken", "django_language"), html=(r"csrfmiddlewaretoken",), confidence=75, website="https://djangoproject.com"),
    Signature("Ruby on Rails", ("Web frameworks",), html=(r'name="csrf-param" content="authenticity_token"',), cookies=("_rails_session",), confidence=75, website="https://rubyonrails.org"),
    Signature("Laravel", ("Web frameworks",), cookies=("laravel_session", "XSRF-TOKEN"), confidence=75, website="https://laravel.com"),
    Signature("Firebase", ("Databases", "Backend"), html=(r"firebaseapp\.com", r"firebase(?:-app)?(?:\.min)?\.js"), website="https://firebase.google.com"),
    Signature("Supabase", ("Databases", "Backend"), html=(r"supabase\.co",), website="https://supabase.com"),
    # Hosting / infrastructure
    Signature("Vercel", ("PaaS",), headers=(("x-vercel-id", r".*"), ("server", r"Vercel")), website="https://vercel.com"),
    Signature("Netlify", ("PaaS",), headers=(("x-nf-request-id", r".*"), ("server", r"Netlify")), website="https://netlify.com"),
    Signature("Heroku", ("PaaS",), headers=(("via", r"vegur"),), website="https://heroku.com"),
    Signature("Nginx", ("Web servers",), headers=(("server", r"nginx"),), website="https://nginx.org"),
    Signature("Apache", ("Web servers",), headers=(("server", r"Apache"),), website="https://httpd.apache.org"),
    Signature("Cloudflare", ("CDN",), headers=(("cf-ray", r".*"), ("server", r"cloudflare")), website="https://cloudflare.com"),
    Signature("AWS", ("PaaS", "CDN"), headers=(("x-amz-cf-id", r".*"), ("x-amz-request-id", r".*"), ("server", r"AmazonS3|awselb")), website="https://aws.amazon.com"),
    Signature("Google Cloud", ("PaaS",), headers=(("server", r"Google Frontend"), ("via", r"1\.1 google")), website="https://cloud.google.com"),
    # Analytics / payments
    Signature("Google Analytics", ("Analytics",), html=(r"googletagmanager\.com/gtag/js", r"google-analytics\.com/analytics\.js"), website="https://marketingplatform.google.com"),
    Signature("Stripe", ("Payment processors",), html=(r"js\.stripe\.com",), website="https://stripe.com"),
    Signature("Intercom", ("Live chat",), html=(r"widget\.intercom\.io",), website="https://intercom.com"),
)


def _compile_signatures():
    compiled = []
    for sig in SIGNATURES:
        compiled.append((
            sig,
            [re.compile(p, re.IGNORECASE) for p in sig.html],
            [(h.lower(), re.compile(p, re.IGNORECASE)) for h, p in sig.headers],
        ))
    return compiled


_COMPILED = _compile_signatures()


def fingerprint(html: str, headers: Dict[str, str], cookies: List[str]) -> List[DetectedTechnology]:
    """Match a response against the signature table."""
    lowered_headers = {k.lower(): v for k, v in headers.items()}
    cookie_names = {c.lower() for c in cookies}
    found: List[DetectedTechnology] = []

    for sig, html_patterns, header_patterns in _COMPILED:
        matched = any(p.search(html) for p in html_patterns)
        if not matched:
            matched = any(
                name in lowered_headers and pattern.search(lowered_headers[name])
                for name, pattern in header_patterns
            )
        if not matched:
            matched = any(c.lower() in cookie_names for c in sig.cookies)
        if matched:
            found.append(DetectedTechnology(
                name=sig.name,
                categories=list(sig.categories),
                confidence=sig.confidence,
                website=sig.website,
            ))
    return found


class TechDetectionService:
    """Detect the technologies behind a URL.

    Public API:
        detect_technologies(url) -> TechDetectionResult | None
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._max_retries = max_retries
        self._transport = transport
        self._stats = {"requests": 0, "successes": 0, "failures": 0}

    async def detect_technologies(self, url: str) -> Optional[TechDetectionResult]:
        if not is_fetchable_url(url):
            logger.warning(f"Tech detection skipped for disallowed URL: {url}")
            return None

        self._stats["requests"] += 1
        for attempt in range(self._max_retries + 1):
            try:
                response = await self._fetch(url)
                technologies = fingerprint(
                    response.text,
                    dict(response.headers),
                    list(response.cookies.keys()),
                )
                self._stats["successes"] += 1
                logger.info(f"Tech detection found {len(technologies)} technologies for {url}")
                return TechDetectionResult(
                    technologies=technologies,
                    content_type=response.headers.get("content-type"),
                    detected_at=utcnow(),
                    success=True,
                )
            except httpx.HTTPError as e:
                logger.warning(
                    f"Tech detection attempt {attempt + 1}/{self._max_retries + 1} "
                    f"failed for {url}: {type(e).__name__}: {e}"
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(RETRY_DELAY_SECONDS * (attempt + 1))

        self._stats["failures"] += 1
        return None

    async def _fetch(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response

    def get_stats(self) -> dict:
        return dict(self._stats)
