import json
from typing import Dict, Mapping, Optional, Tuple, Union

from sanic import Sanic, response, Request
from sanic.log import logger
import sanic.log
import aiohttp
import cachetools
from gidgethub import aiohttp as gh_aiohttp
from gidgethub.routing import Router
from gidgethub.sansio import Event
from prometheus_client import core
from prometheus_client.exposition import generate_latest

from mergeguard import config
from mergeguard.auth import TokenCache
from mergeguard.client import GateClient
from mergeguard.errors import PayloadError, UpstreamError, VerificationError
from mergeguard.github import EventKind, GateContext, create_router
from mergeguard.github.api import GitHubGateway
from mergeguard.logger import get_log_handlers
from mergeguard.metric import error_counter, request_counter, webhook_counter
from mergeguard.model import Configuration
from mergeguard.queue import JobQueue, PeriodicRefresher
from mergeguard.signature import SIGNATURE_HEADER, verify_signature

EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"

SERVER_STATUS_OK = "ok"
SERVER_STATUS_ERROR = "error"
SERVER_MESSAGE_OK = "Server is running fine"

WebhookResult = Tuple[int, Dict[str, str]]


def ok(message: str = "") -> WebhookResult:
    return 200, {"status": SERVER_STATUS_OK, "message": message}


def error(status: int, message: str) -> WebhookResult:
    return status, {"status": SERVER_STATUS_ERROR, "message": message}


def health() -> WebhookResult:
    return ok(SERVER_MESSAGE_OK)


async def process_webhook(
    headers: Mapping[str, str],
    body: Union[str, bytes],
    ctx: GateContext,
    router: Router,
    secret: Optional[str] = None,
) -> WebhookResult:
    headers = {k.lower(): v for k, v in headers.items()}

    try:
        verify_signature(headers.get(SIGNATURE_HEADER.lower()), secret, body)
    except VerificationError as e:
        logger.error("Failed to verify webhook: %s", e)
        return error(403, str(e))

    event_name = headers.get(EVENT_HEADER.lower())
    if not event_name:
        logger.error("Missing %s header", EVENT_HEADER)
        return error(400, f"Missing {EVENT_HEADER} header")

    webhook_counter.labels(event=event_name).inc()

    kind = EventKind.parse(event_name)
    if kind == EventKind.unrecognized:
        logger.warning("Unhandled GitHub event: %s", event_name)
        return error(501, f"Event '{event_name}' is not implemented")

    try:
        data = json.loads(body)
    except ValueError as e:
        logger.error("Failed to decode %s event: %s", event_name, e)
        return error(400, f"Failed to parse {event_name} event: {e}")

    event = Event(
        data, event=event_name, delivery_id=headers.get(DELIVERY_HEADER.lower(), "")
    )

    logger.debug("Dispatching event %s", event_name)
    try:
        await router.dispatch(event, ctx)
    except PayloadError as e:
        logger.error("Invalid %s payload: %s", event_name, e)
        return error(400, str(e))
    except UpstreamError as e:
        error_counter.labels(context="event_dispatch").inc()
        logger.error("Failed to handle %s event: %s", event_name, e, exc_info=True)
        return error(500, str(e))
    except Exception:
        error_counter.labels(context="event_dispatch").inc()
        logger.error("Exception raised when dispatching event", exc_info=True)
        return error(500, "Internal server error")

    return ok()


def build_context(cfg: Configuration, gh) -> GateContext:
    gateway = GitHubGateway(gh)
    tokens = TokenCache(
        gateway, cfg.github.client_id, cfg.github.read_private_key()
    )
    client = GateClient(gateway, tokens, cfg.github.client_id)
    queue = JobQueue() if cfg.server.periodic_refresh > 0 else None
    return GateContext(client=client, queue=queue)


async def start_services(app, cfg: Configuration) -> None:
    logger.debug("Creating aiohttp session")
    app.ctx.aiohttp_session = aiohttp.ClientSession()

    gh = gh_aiohttp.GitHubAPI(
        app.ctx.aiohttp_session,
        "mergeguard",
        cache=app.ctx.http_cache,
        base_url=cfg.github.api,
    )
    app.ctx.gate = build_context(cfg, gh)

    if app.ctx.gate.queued:
        app.ctx.refresher = PeriodicRefresher(
            app.ctx.gate.queue,
            app.ctx.gate.client.refresh_job,
            period=cfg.server.periodic_refresh,
        )
        app.ctx.refresher.start()


async def stop_services(app) -> None:
    if app.ctx.refresher is not None:
        await app.ctx.refresher.stop()
        app.ctx.refresher = None


async def close_session(app) -> None:
    logger.debug("Closing aiohttp session")
    await app.ctx.aiohttp_session.close()


def count_request(request) -> None:
    if request.path in ("/healthz", "/metrics"):
        return
    logger.debug("%s %s", request.method, request.path)
    request_counter.labels(path=request.path).inc()


async def handle_webhook(request, app):
    logger.debug("Webhook received")
    status, body = await process_webhook(
        request.headers,
        request.body,
        app.ctx.gate,
        app.ctx.github_router,
        secret=app.config.WEBHOOK_SECRET,
    )
    return response.json(body, status=status)


def create_app(cfg: Configuration) -> Sanic:

    app = Sanic("mergeguard")
    app.config.WEBHOOK_SECRET = cfg.server.webhook_secret
    app.config.PERIODIC_REFRESH = cfg.server.periodic_refresh

    get_log_handlers(sanic.log.logger)

    app.ctx.http_cache = cachetools.LRUCache(maxsize=config.HTTP_CACHE_SIZE)
    app.ctx.github_router = create_router()
    app.ctx.refresher = None

    @app.listener("before_server_start")
    async def init(app, loop):
        await start_services(app, cfg)

    @app.listener("before_server_stop")
    async def stop_refresher(app, loop):
        await stop_services(app)

    @app.listener("after_server_stop")
    async def shutdown(app, loop):
        await close_session(app)

    @app.on_request
    async def on_request(request: Request):
        count_request(request)

    @app.get("/healthz")
    async def healthz(request):
        status, body = health()
        return response.json(body, status=status)

    @app.route("/webhook", methods=["POST"])
    async def github(request):
        return await handle_webhook(request, app)

    @app.get("/metrics")
    async def metrics(request):
        return response.raw(generate_latest(core.REGISTRY))

    return app
