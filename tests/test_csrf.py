"""
Tests for CSRF token functions.
"""
from fastapi import Response
from starlette.requests import Request

from roleguard.core.config import settings
from roleguard.core.security import (
    clear_csrf_cookie,
    generate_csrf_token,
    has_api_key_bypass,
    is_route_excluded_from_csrf,
    is_valid_token_format,
    requires_csrf_validation,
    rotate_csrf_token,
    validate_csrf_request,
    validate_csrf_token,
)


def make_request(method: str = "POST", path: str = "/api/roles", headers=None, cookies=None) -> Request:
    raw_headers = [(name.lower().encode(), value.encode()) for name, value in (headers or {}).items()]
    if cookies:
        cookie_header = "; ".join(f"{name}={value}" for name, value in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode()))
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "headers": raw_headers,
        "query_string": b"",
        "client": ("127.0.0.1", 12345),
    }
    return Request(scope)


class TestTokenGeneration:

    def test_token_is_64_lowercase_hex(self):
        token = generate_csrf_token()
        assert len(token) == 64
        assert is_valid_token_format(token)
        assert token == token.lower()

    def test_generated_token_validates_against_itself(self):
        token = generate_csrf_token()
        assert validate_csrf_token(token, token) is True

    def test_thousand_tokens_are_unique(self):
        tokens = {generate_csrf_token() for _ in range(1000)}
        assert len(tokens) == 1000


class TestTokenFormat:

    def test_format_check_is_idempotent(self):
        for value in [generate_csrf_token(), "abc", "", "G" * 64, "A" * 64]:
            assert is_valid_token_format(value) == is_valid_token_format(value)

    def test_rejects_malformed_values(self):
        assert is_valid_token_format(None) is False
        assert is_valid_token_format("") is False
        assert is_valid_token_format("a" * 63) is False
        assert is_valid_token_format("a" * 65) is False
        assert is_valid_token_format("A" * 64) is False
        assert is_valid_token_format("g" * 64) is False


class TestTokenValidation:

    def test_missing_either_side(self):
        token = generate_csrf_token()
        assert validate_csrf_token(None, token) is False
        assert validate_csrf_token(token, None) is False
        assert validate_csrf_token("", "") is False

    def test_mismatch_rejected(self):
        assert validate_csrf_token(generate_csrf_token(), generate_csrf_token()) is False

    def test_equal_but_malformed_rejected(self):
        assert validate_csrf_token("abc", "abc") is False

    def test_single_character_difference_rejected(self):
        token = generate_csrf_token()
        flipped = token[:-1] + ("0" if token[-1] != "0" else "1")
        assert validate_csrf_token(token, flipped) is False


class TestRouteRules:

    def test_state_changing_methods(self):
        for method in ["POST", "PUT", "PATCH", "DELETE", "post", "Delete"]:
            assert requires_csrf_validation(method) is True
        for method in ["GET", "HEAD", "OPTIONS", "get"]:
            assert requires_csrf_validation(method) is False

    def test_exact_exclusions(self):
        assert is_route_excluded_from_csrf("/api/auth/login") is True
        assert is_route_excluded_from_csrf("/api/auth/resend-verification") is True
        assert is_route_excluded_from_csrf("/api/auth/login/extra") is False
        assert is_route_excluded_from_csrf("/api/auth/logout") is False

    def test_prefix_exclusions(self):
        assert is_route_excluded_from_csrf("/api/auth/oauth/google/callback") is True
        assert is_route_excluded_from_csrf("/api/invites/abc123/accept") is True
        assert is_route_excluded_from_csrf("/api/roles") is False

    def test_api_key_bypass(self):
        assert has_api_key_bypass(make_request(headers={"X-API-Key": "key-123"})) is True
        assert has_api_key_bypass(make_request(headers={"X-API-Key": "   "})) is False
        assert has_api_key_bypass(make_request()) is False


class TestRequestValidation:

    def test_no_tokens(self):
        assert validate_csrf_request(make_request()) == "CSRF token missing"

    def test_header_only(self):
        request = make_request(headers={settings.csrf_header_name: generate_csrf_token()})
        assert validate_csrf_request(request) == "CSRF token missing"

    def test_mismatched_pair(self):
        request = make_request(
            headers={settings.csrf_header_name: generate_csrf_token()},
            cookies={settings.csrf_cookie_name: generate_csrf_token()},
        )
        assert validate_csrf_request(request) == "Invalid CSRF token"

    def test_matching_pair(self):
        token = generate_csrf_token()
        request = make_request(
            headers={settings.csrf_header_name: token},
            cookies={settings.csrf_cookie_name: token},
        )
        assert validate_csrf_request(request) is None

    def test_error_never_echoes_token(self):
        token = "z" * 64
        request = make_request(
            headers={settings.csrf_header_name: token},
            cookies={settings.csrf_cookie_name: token},
        )
        error = validate_csrf_request(request)
        assert error == "Invalid CSRF token"
        assert token not in error


class TestCookies:

    def test_rotate_sets_readable_strict_cookie(self):
        response = Response()
        token = rotate_csrf_token(response)

        cookie = response.headers["set-cookie"]
        assert is_valid_token_format(token)
        assert f"{settings.csrf_cookie_name}={token}" in cookie
        assert "samesite=strict" in cookie.lower()
        assert "httponly" not in cookie.lower()
        assert "Path=/" in cookie

    def test_rotate_issues_new_token(self):
        assert rotate_csrf_token(Response()) != rotate_csrf_token(Response())

    def test_clear_expires_cookie(self):
        response = Response()
        clear_csrf_cookie(response)
        cookie = response.headers["set-cookie"]
        assert f'{settings.csrf_cookie_name}=""' in cookie
        assert "Max-Age=0" in cookie
