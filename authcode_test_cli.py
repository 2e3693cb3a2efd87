#!/usr/bin/env python3
"""Manual diagnostic CLI for an OAuth 2.0 Authorization Code provider.

The ``test`` subcommand walks through the authorization code flow once:
it opens (or prints) the provider's authorize URL, captures the redirect on a
one-shot localhost listener, exchanges the code for tokens, calls the
protected echo endpoint and refreshes the tokens twice. The ``timeout``
subcommand does the same exchange and then polls the echo endpoint every
second until the access token stops being accepted, so the operator can see
when the provider actually expires it. ``generate`` writes the JSON config
file both commands read.
"""
from __future__ import annotations

import argparse
import base64
import http.client
import json
import logging
import queue
import subprocess
import sys
import textwrap
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List
from urllib import error as urlerror
from urllib import parse as urlparse
from urllib import request as urlrequest
import webbrowser

from dotenv import dotenv_values
from flask import Flask, Response, request
from werkzeug.serving import make_server

__version__ = "0.1.1"

DEFAULT_SCOPE = "openid"
DEFAULT_ENV_FILE = ".env"
DEFAULT_CONFIG_NAME = ".authcodetest"
DEFAULT_LOGIN_TIMEOUT = 300
EXPIRY_TOLERANCE_SECONDS = 300
LISTENER_HOST = "127.0.0.1"
TOKEN_PATH = "/token"
AUTHORIZE_PATH = "/authorize"
ECHO_PATH = "/echo/v2/ping"
GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"
CONFIG_FIELDS = (
    ("ClientID", "client_id"),
    ("ClientSecret", "client_secret"),
    ("Redirect", "redirect"),
    ("Port", "port"),
    ("RootURL", "root_url"),
)

logger = logging.getLogger("authcode_test")


class AuthCodeTestError(RuntimeError):
    """Base class for every failure the CLI reports before exiting."""


class ConfigReadError(AuthCodeTestError):
    pass


class ConfigParseError(AuthCodeTestError):
    pass


class ConfigWriteError(AuthCodeTestError):
    pass


class MissingAuthCode(AuthCodeTestError):
    """No usable authorization code came back from the login."""


class UserLoginTimeout(AuthCodeTestError):
    """Nobody completed the browser login before the wait expired."""


class InvalidGrantMethod(AuthCodeTestError):
    pass


class TransportError(AuthCodeTestError):
    """Network-level failure talking to the provider."""


class TokenExchangeFailed(AuthCodeTestError):
    def __init__(self, status: int, body: str, reason: str = "Token endpoint rejected the request") -> None:
        super().__init__(f"{reason} (HTTP {status}): {body}")
        self.status = status
        self.body = body


@dataclass
class HttpResponse:
    status: int
    content_type: str
    payload: str


@dataclass
class EnvDefaults:
    config_file: str
    scope: str = DEFAULT_SCOPE
    login_timeout: int = DEFAULT_LOGIN_TIMEOUT


@dataclass
class AuthCodeConfig:
    client_id: str = ""
    client_secret: str = ""
    redirect: str = ""
    port: str = ""
    root_url: str = ""

    @property
    def listener_port(self) -> int:
        try:
            return int(self.port)
        except ValueError as exc:
            raise ConfigParseError(f"Port {self.port!r} in config is not a number") from exc

    def endpoint(self, path: str) -> str:
        return f"{self.root_url.rstrip('/')}{path}"

    def to_json(self) -> str:
        record = {key: getattr(self, attr) for key, attr in CONFIG_FIELDS}
        return json.dumps(record, indent=2) + "\n"


@dataclass
class TokenResponse:
    access_token: str = ""
    refresh_token: str = ""
    expires_in: int = 0
    id_token: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenResponse":
        try:
            expires_in = int(payload.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0
        return cls(
            access_token=payload.get("access_token") or "",
            refresh_token=payload.get("refresh_token") or "",
            expires_in=expires_in,
            id_token=payload.get("id_token") or "",
        )


@dataclass
class Session:
    """Mutable state for one run.

    ``auth_code`` is written once by :func:`obtain_auth_code`; ``tokens`` is
    only ever replaced by :func:`exchange_tokens`.
    """

    scope: str = DEFAULT_SCOPE
    auth_code: str | None = None
    tokens: TokenResponse = field(default_factory=TokenResponse)


def default_config_path() -> str:
    return str(Path.home() / DEFAULT_CONFIG_NAME)


def load_config(path: str | Path) -> AuthCodeConfig:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigReadError(f"Error reading config file {path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(f"Error parsing config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigParseError(f"Error parsing config file {path}: expected a JSON object")
    values: Dict[str, str] = {}
    for key, attr in CONFIG_FIELDS:
        value = data.get(key, "")
        if not isinstance(value, str):
            raise ConfigParseError(
                f"Error parsing config file {path}: {key} must be a string, got {type(value).__name__}"
            )
        values[attr] = value
    return AuthCodeConfig(**values)


def _port_from_redirect(redirect: str) -> str:
    try:
        port = urlparse.urlparse(redirect).port
    except ValueError as exc:
        raise ConfigParseError(f"Redirect URL {redirect!r} has an invalid port: {exc}") from exc
    if port is None:
        raise ConfigParseError(
            f"Redirect URL {redirect!r} must include an explicit port for the local listener"
        )
    return str(port)


def generate_config(output: str | Path, prompt: Callable[[str], str] | None = None) -> AuthCodeConfig:
    prompt = prompt or input
    client_id = prompt("Client ID: ").strip()
    client_secret = prompt("Client Secret: ").strip()
    redirect = prompt("Redirect URL: ").strip()
    root_url = prompt("Root API URL: ").strip()

    config = AuthCodeConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect=redirect,
        port=_port_from_redirect(redirect),
        root_url=root_url,
    )
    rendered = config.to_json()
    print(rendered, end="")
    try:
        Path(output).write_text(rendered, encoding="utf-8")
    except OSError as exc:
        raise ConfigWriteError(f"Couldn't write config file {output}: {exc}") from exc
    logger.info("Wrote config to %s", output)
    return config


def _determine_env_file(argv: list[str]) -> str:
    env_file = DEFAULT_ENV_FILE
    for idx, arg in enumerate(argv):
        if arg in ("--env-file", "-e"):
            if idx + 1 < len(argv):
                env_file = argv[idx + 1]
        elif arg.startswith("--env-file="):
            env_file = arg.split("=", 1)[1]
        elif arg.startswith("-e="):
            env_file = arg.split("=", 1)[1]
    return env_file


def _load_env_defaults(env_file: str) -> EnvDefaults:
    defaults = EnvDefaults(config_file=default_config_path())
    path = Path(env_file)
    if not path.exists():
        return defaults
    values = dotenv_values(path)
    if values.get("config_file"):
        defaults.config_file = str(Path(values["config_file"]).expanduser())
    if values.get("scope"):
        defaults.scope = values["scope"]
    if values.get("login_timeout"):
        try:
            defaults.login_timeout = int(values["login_timeout"])
        except ValueError:
            logger.warning(
                "Ignoring login_timeout=%r from %s: not a number", values["login_timeout"], env_file
            )
    return defaults


def _encode_query(params: Dict[str, Any]) -> str:
    safe_params = {k: v for k, v in params.items() if v is not None}
    return urlparse.urlencode(safe_params, quote_via=urlparse.quote)


def _basic_auth(client_id: str, client_secret: str) -> str:
    credentials = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


def _post_form(url: str, data: Dict[str, Any], headers: Dict[str, str] | None, timeout: int) -> HttpResponse:
    encoded = _encode_query(data).encode("utf-8")
    req = urlrequest.Request(
        url,
        data=encoded,
        headers={"Content-Type": "application/x-www-form-urlencoded", **(headers or {})},
        method="POST",
    )
    return _execute(req, timeout)


def _get(url: str, headers: Dict[str, str] | None, timeout: int) -> HttpResponse:
    req = urlrequest.Request(url, headers=headers or {})
    return _execute(req, timeout)


def _execute(req: urlrequest.Request, timeout: int) -> HttpResponse:
    try:
        with urlrequest.urlopen(req, timeout=timeout) as resp:
            payload = resp.read().decode("utf-8", errors="replace")
            return HttpResponse(
                status=resp.status,
                content_type=resp.headers.get("Content-Type", ""),
                payload=payload,
            )
    except urlerror.HTTPError as exc:
        # Non-2xx statuses are answers, not transport failures.
        body = exc.read().decode("utf-8", errors="replace")
        return HttpResponse(
            status=exc.code,
            content_type=exc.headers.get("Content-Type", "") if exc.headers else "",
            payload=body,
        )
    except (urlerror.URLError, http.client.HTTPException, OSError) as exc:
        raise TransportError(f"Request to {req.full_url} failed: {exc}") from exc


def _describe_token(token: str, show: bool) -> str:
    if show or not token:
        return token or "<none>"
    return f"<{len(token)} chars>"


class RedirectListener:
    """One-shot localhost server that captures the authorization code.

    The first request carrying a ``code`` wins; its last ``code`` value is
    handed to :meth:`wait` and every later request gets ``410``. Requests
    without a code are rejected with ``400`` and the listener keeps waiting.
    """

    def __init__(self, port: int, host: str = LISTENER_HOST) -> None:
        self.port = port
        self.host = host
        self._results: "queue.Queue[tuple[str, str]]" = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._delivered = False
        self._server = None
        self._thread: threading.Thread | None = None
        self.app = self._build_app()

    def _build_app(self) -> Flask:
        app = Flask(__name__)

        @app.get("/", defaults={"path": ""})
        @app.get("/<path:path>")
        def capture(path: str) -> Response:
            return self._handle(request.args.getlist("code"), request.args.get("error"),
                                request.args.get("error_description"))

        return app

    def _handle(self, codes: List[str], error: str | None, error_description: str | None) -> Response:
        with self._lock:
            if self._delivered:
                return Response("listener closed", status=410, mimetype="text/plain")
            if error:
                detail = f"{error}: {error_description}" if error_description else error
                logger.error("Provider redirected with an error: %s", detail)
                self._deliver("error", detail)
                return Response(f"authorization failed: {detail}", status=400, mimetype="text/plain")
            code = codes[-1] if codes else ""
            if not code:
                logger.warning("Auth Code not found in redirect; still waiting for a valid callback")
                return Response("missing code", status=400, mimetype="text/plain")
            self._deliver("code", code)
        return Response("success", mimetype="text/plain")

    def _deliver(self, kind: str, value: str) -> None:
        self._delivered = True
        self._results.put_nowait((kind, value))

    def start(self) -> None:
        self._server = make_server(self.host, self.port, self.app)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info("Starting localhost listener on %s:%s", self.host, self.port)

    def shutdown(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None

    def wait(self, timeout: float | None) -> str:
        try:
            kind, value = self._results.get(timeout=timeout)
        except queue.Empty:
            raise UserLoginTimeout(
                f"No redirect received within {timeout:g} seconds. Was the browser login completed?"
            ) from None
        finally:
            self.shutdown()
        if kind == "error":
            raise MissingAuthCode(f"Authorization failed before a code was issued: {value}")
        return value


class BrowserLauncher:
    def launch(self, url: str) -> None:
        raise NotImplementedError


class PrintURLLauncher(BrowserLauncher):
    def launch(self, url: str) -> None:
        print(f"Login URL: {url}")


class MacOSOpenLauncher(BrowserLauncher):
    """Open the URL with ``open -g`` so the terminal keeps focus."""

    command = "/usr/bin/open"

    def launch(self, url: str) -> None:
        logger.info("Launching Redirect URL in background: %s", url)
        try:
            subprocess.Popen([self.command, "-g", url])
        except OSError as exc:
            print(f"Warning: failed to launch browser: {exc}", file=sys.stderr)
            PrintURLLauncher().launch(url)


class WebBrowserLauncher(BrowserLauncher):
    def launch(self, url: str) -> None:
        logger.info("Opening login URL in the default browser")
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as exc:  # pragma: no cover - best-effort helper
            print(f"Warning: failed to launch browser: {exc}", file=sys.stderr)
            opened = False
        if not opened:
            PrintURLLauncher().launch(url)


def select_launcher(platform: str | None = None, open_browser: bool = False) -> BrowserLauncher:
    if open_browser:
        return WebBrowserLauncher()
    if (platform or sys.platform) == "darwin":
        return MacOSOpenLauncher()
    return PrintURLLauncher()


def build_authorization_url(config: AuthCodeConfig, scope: str) -> str:
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect,
        "scope": scope,
    }
    return f"{config.endpoint(AUTHORIZE_PATH)}?{_encode_query(params)}"


def obtain_auth_code(
    config: AuthCodeConfig,
    session: Session,
    launcher: BrowserLauncher,
    login_timeout: float | None,
    show_tokens: bool = False,
) -> str:
    listener = RedirectListener(config.listener_port)
    listener.start()
    try:
        launcher.launch(build_authorization_url(config, session.scope))
    except BaseException:
        listener.shutdown()
        raise
    logger.info("If waiting check browser window for the provider login")
    session.auth_code = listener.wait(login_timeout)
    logger.info("Auth Code: %s", _describe_token(session.auth_code, show_tokens))
    return session.auth_code


def _token_request_data(session: Session, config: AuthCodeConfig, grant: str) -> Dict[str, str]:
    if grant == GRANT_AUTHORIZATION_CODE:
        if not session.auth_code:
            raise MissingAuthCode("No authorization code captured; cannot exchange it for tokens")
        return {
            "grant_type": GRANT_AUTHORIZATION_CODE,
            "code": session.auth_code,
            "redirect_uri": config.redirect,
            "scope": session.scope,
        }
    if grant == GRANT_REFRESH_TOKEN:
        return {
            "grant_type": GRANT_REFRESH_TOKEN,
            "refresh_token": session.tokens.refresh_token,
            "scope": session.scope,
        }
    raise InvalidGrantMethod(f"Invalid grant method: {grant!r}")


def exchange_tokens(config: AuthCodeConfig, session: Session, grant: str, timeout: int = 30) -> TokenResponse:
    """Call the token endpoint and replace ``session.tokens`` on success.

    Raises:
        InvalidGrantMethod: ``grant`` is not a supported grant type.
        TokenExchangeFailed: the endpoint answered with anything but a 200
            carrying a JSON object. The session is left untouched.
        TransportError: the endpoint could not be reached.
    """
    data = _token_request_data(session, config, grant)
    headers = {"Authorization": _basic_auth(config.client_id, config.client_secret)}
    logger.debug("POST %s grant_type=%s", config.endpoint(TOKEN_PATH), grant)
    response = _post_form(config.endpoint(TOKEN_PATH), data, headers, timeout=timeout)
    if response.status != 200:
        logger.error("Token Response Code: %d", response.status)
        logger.error("ERROR token body: %s", response.payload)
        raise TokenExchangeFailed(response.status, response.payload)
    try:
        payload = json.loads(response.payload)
    except json.JSONDecodeError:
        payload = None
    if not isinstance(payload, dict):
        raise TokenExchangeFailed(response.status, response.payload, "Token endpoint returned a non-JSON body")
    session.tokens = TokenResponse.from_payload(payload)
    return session.tokens


def call_echo(config: AuthCodeConfig, session: Session, timeout: int = 30) -> bool:
    headers = {"Authorization": f"Bearer {session.tokens.access_token}"}
    response = _get(config.endpoint(ECHO_PATH), headers, timeout=timeout)
    if response.status == 200:
        return True
    logger.error("ERROR: Echo status Code: %d", response.status)
    logger.error("ERROR: Echo body %s", response.payload)
    return False


def poll_until_expired(
    probe: Callable[[], bool],
    expires_in: int,
    tolerance: int = EXPIRY_TOLERANCE_SECONDS,
    sleep: Callable[[float], None] | None = None,
) -> int:
    """Probe once a second until it fails or ``expires_in + tolerance`` passes.

    Returns the number of seconds slept, i.e. how many probes succeeded.
    """
    sleep = sleep or time.sleep
    elapsed = 0
    while elapsed < expires_in + tolerance:
        ok = probe()
        if not ok:
            break
        logger.info("Echo Response: %s - Elapsed: %d - Sleeping 1 second....", ok, elapsed)
        sleep(1)
        elapsed += 1
    return elapsed


def run_auth_test(
    config: AuthCodeConfig,
    session: Session,
    launcher: BrowserLauncher,
    login_timeout: float | None,
    timeout: int = 30,
    show_tokens: bool = False,
) -> bool:
    obtain_auth_code(config, session, launcher, login_timeout, show_tokens=show_tokens)
    tokens = exchange_tokens(config, session, GRANT_AUTHORIZATION_CODE, timeout=timeout)
    logger.info(
        "Returned Auth - Refresh: %s - AccessToken: %s",
        _describe_token(tokens.refresh_token, show_tokens),
        _describe_token(tokens.access_token, show_tokens),
    )
    logger.info("Calling Echo...")
    echo = call_echo(config, session, timeout=timeout)
    logger.info("Echo Status: %s", echo)
    for _ in range(2):
        logger.info("Refreshing Token...")
        tokens = exchange_tokens(config, session, GRANT_REFRESH_TOKEN, timeout=timeout)
        logger.info("Returned Refresh: %s", _describe_token(tokens.refresh_token, show_tokens))
    return echo


@dataclass
class TimeoutResult:
    expires_in: int
    successful_probes: int
    elapsed_seconds: float
    final_echo: bool


def run_timeout_test(
    config: AuthCodeConfig,
    session: Session,
    launcher: BrowserLauncher,
    login_timeout: float | None,
    timeout: int = 30,
    show_tokens: bool = False,
    sleep: Callable[[float], None] | None = None,
) -> TimeoutResult:
    obtain_auth_code(config, session, launcher, login_timeout, show_tokens=show_tokens)
    exchange_tokens(config, session, GRANT_AUTHORIZATION_CODE, timeout=timeout)
    logger.info("Refreshing token for fresh expiration")
    tokens = exchange_tokens(config, session, GRANT_REFRESH_TOKEN, timeout=timeout)

    start = datetime.now()
    started = time.monotonic()
    expected = start + timedelta(seconds=tokens.expires_in)
    logger.info(
        "Token: %s - Created at: %s",
        _describe_token(tokens.access_token, show_tokens),
        start.strftime("%Y-%m-%dT%H:%M:%S"),
    )
    logger.info("Calculated Expire time: %s", expected.strftime("%Y-%m-%dT%H:%M:%S"))
    logger.info("Expires in: %d", tokens.expires_in)

    successes = poll_until_expired(
        lambda: call_echo(config, session, timeout=timeout),
        tokens.expires_in,
        sleep=sleep,
    )
    elapsed = time.monotonic() - started
    logger.info("Total Elapsed Time: %.3f", elapsed)

    logger.info("Refreshing Token")
    exchange_tokens(config, session, GRANT_REFRESH_TOKEN, timeout=timeout)
    final_echo = call_echo(config, session, timeout=timeout)
    logger.info("Echo Response: %s", final_echo)
    return TimeoutResult(
        expires_in=tokens.expires_in,
        successful_probes=successes,
        elapsed_seconds=elapsed,
        final_echo=final_echo,
    )


def _login_timeout(args: argparse.Namespace) -> float | None:
    return args.login_timeout if args.login_timeout and args.login_timeout > 0 else None


def handle_test(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    session = Session(scope=args.scope)
    echo = run_auth_test(
        config,
        session,
        select_launcher(open_browser=args.open_browser),
        _login_timeout(args),
        timeout=args.timeout,
        show_tokens=args.show_tokens,
    )
    print(
        textwrap.dedent(
            f"""
            Authorization code flow completed against {config.root_url}
              Echo with initial access token: {'PASS' if echo else 'FAIL'}
              Refresh token exchanges: 2 of 2 succeeded
            """
        ).strip()
    )


def handle_timeout(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    session = Session(scope=args.scope)
    result = run_timeout_test(
        config,
        session,
        select_launcher(open_browser=args.open_browser),
        _login_timeout(args),
        timeout=args.timeout,
        show_tokens=args.show_tokens,
    )
    print(
        textwrap.dedent(
            f"""
            Access token expiry check against {config.root_url}
              expires_in reported by provider: {result.expires_in}s
              Echo accepted the token for: {result.successful_probes}s
              Wall-clock elapsed: {result.elapsed_seconds:.1f}s
              Echo after final refresh: {'PASS' if result.final_echo else 'FAIL'}
            """
        ).strip()
    )


def handle_generate(args: argparse.Namespace) -> None:
    generate_config(args.output)


def build_parser(defaults: EnvDefaults, env_file: str) -> argparse.ArgumentParser:
    description = textwrap.dedent(
        """
        Test the OAuth authcode flow and get tokens from an authcode and refresh token.

        Typical flow:
          1. Run `generate` once to write the client config file.
          2. Run `test` to log in through the browser and exercise token + refresh calls.
          3. Run `timeout` to watch how long the access token is accepted by the echo endpoint.
        """
    ).strip()
    parser = argparse.ArgumentParser(
        prog="authcode-test",
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--env-file",
        "-e",
        default=env_file,
        help="Path to a .env file with default settings (default: %(default)s).",
    )
    parser.add_argument(
        "--timeout",
        default=30,
        type=int,
        help="HTTP timeout in seconds (default: %(default)s).",
    )
    parser.add_argument(
        "--login-timeout",
        default=defaults.login_timeout,
        type=int,
        help=(
            "Seconds to wait for the browser login to redirect back "
            "(default: %(default)s; 0 waits forever)."
        ),
    )
    parser.add_argument(
        "--open-browser",
        action="store_true",
        help="Open the login URL with the default browser on any platform instead of printing it.",
    )
    parser.add_argument(
        "--show-tokens",
        action="store_true",
        help="Log full token values instead of their lengths.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    test = subparsers.add_parser("test", aliases=["t"], help="run authcode flow test")
    test.add_argument(
        "--config",
        "-c",
        default=defaults.config_file,
        metavar="FILE",
        help="Load configuration from FILE (default: %(default)s).",
    )
    test.add_argument(
        "--scope",
        "-s",
        default=defaults.scope,
        help="Override default scope (default: %(default)s).",
    )
    test.set_defaults(func=handle_test)

    generate = subparsers.add_parser("generate", aliases=["gen", "g"], help="Generate config file")
    generate.add_argument(
        "--output",
        "-o",
        default=defaults.config_file,
        metavar="FILE",
        help="Output to FILE (default: %(default)s).",
    )
    generate.set_defaults(func=handle_generate)

    timeout = subparsers.add_parser("timeout", aliases=["o"], help="run authcode timeout test")
    timeout.add_argument(
        "--config",
        "-c",
        default=defaults.config_file,
        metavar="FILE",
        help="Load configuration from FILE (default: %(default)s).",
    )
    timeout.add_argument(
        "--scope",
        "-s",
        default=defaults.scope,
        help="Override default scope (default: %(default)s).",
    )
    timeout.set_defaults(func=handle_timeout)

    return parser


def main(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    env_file = _determine_env_file(argv)
    defaults = _load_env_defaults(env_file)
    parser = build_parser(defaults, env_file)
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    try:
        args.func(args)
    except RuntimeError as exc:
        parser.exit(status=1, message=f"{exc}\n")
    except KeyboardInterrupt:
        parser.exit(status=130, message="Interrupted\n")


if __name__ == "__main__":
    main()
