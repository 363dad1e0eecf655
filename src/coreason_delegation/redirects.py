# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_delegation

"""
Construction of the final redirects back to the developer portal.
"""

from collections.abc import Mapping
from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

from coreason_delegation.config import GatewaySettings
from coreason_delegation.utils.logger import logger


def resolve_return_url(return_url: str | None, portal_url: str | None) -> str:
    """
    Makes a portal return URL absolute.

    Relative URLs are resolved against the portal URL; without a return URL the
    portal URL itself (or ``/``) is used.
    """
    if not return_url:
        return portal_url or "/"
    if return_url.startswith("http") or not portal_url:
        return return_url
    return urljoin(f"{portal_url}/", return_url.lstrip("/"))


def _origin(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme.lower(), parts.netloc.lower()


def safe_return_url(return_url: str | None, portal_url: str | None) -> str:
    """
    Restricts a return URL read back from the OAuth state to the developer portal.

    Relative paths and absolute URLs on the portal's origin are kept as they are.
    Anything else (another host, a scheme-relative ``//host`` path) is replaced by
    the portal URL, or ``/`` when no portal URL is configured.
    """
    fallback = portal_url or "/"
    if not return_url:
        return fallback

    candidate = return_url.strip()
    if candidate.startswith(("//", "\\", "/\\")):
        logger.warning("Rejected scheme-relative return URL from state")
        return fallback

    scheme, netloc = _origin(candidate)
    if not scheme and not netloc:
        return candidate
    if portal_url and (scheme, netloc) == _origin(portal_url):
        return candidate

    logger.warning(f"Rejected return URL outside the developer portal: {scheme}://{netloc}")
    return fallback


def _set_query_params(url: str, params: dict[str, str]) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


def build_sso_redirect(sso_value: str, return_url: str, gateway: GatewaySettings) -> str:
    """
    Turns the management API's SSO response into the browser redirect.

    A full ``signin-sso`` URL has its host moved to the public developer portal
    domain and gets ``returnUrl`` appended if missing. A bare token is wrapped
    into ``<portal_url>/signin-sso``. The appended ``returnUrl`` is restricted
    to the portal with `safe_return_url`.
    """
    return_url = safe_return_url(return_url, gateway.portal_url)
    if "signin-sso" in sso_value:
        sso_url = sso_value.replace(gateway.sso_host_suffix, gateway.public_host_suffix)
        if "returnUrl=" not in sso_url:
            separator = "&" if "?" in sso_url else "?"
            sso_url = f"{sso_url}{separator}returnUrl={quote(return_url, safe='')}"
        return sso_url

    if not gateway.portal_url:
        raise ValueError("APIM_PORTAL_URL is required to build an SSO URL from a bare token")
    return (
        f"{gateway.portal_url}/signin-sso"
        f"?token={quote(sso_value, safe='')}&returnUrl={quote(return_url, safe='')}"
    )


def build_fallback_redirect(
    return_url: str,
    attributes: Mapping[str, str | None],
    salt: str | None,
    portal_url: str | None,
) -> str:
    """
    Redirect used when provisioning failed: the return URL with the user's
    attributes and the original salt as plain query parameters.

    Never raises; on any failure the return URL is returned unchanged.
    """
    try:
        target = resolve_return_url(return_url, portal_url)
        params = {k: str(v) for k, v in attributes.items() if v}
        if salt:
            params["salt"] = salt
        return _set_query_params(target, params)
    except Exception:
        logger.exception("Failed to build fallback redirect; using the return URL as is")
        return return_url or portal_url or "/"
