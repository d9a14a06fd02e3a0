import logging
import os

import stripe
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.middleware.sessions import SessionMiddleware

from storefront import accounts, cart, orders, payments, products, routes, users, webhooks
from storefront.auth import AuthContext, require_user
from storefront.config import Settings
from storefront.database import Base, engine, get_db
from storefront.errors import register_exception_handlers

logger = logging.getLogger(__name__)


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    payments.configure(settings.stripe_secret_key)

    app = FastAPI(title="Storefront API")
    app.state.settings = settings
    app.state.auth = AuthContext.from_settings(settings)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.session_max_age,
        same_site="none",
        https_only=settings.cookie_secure,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.frontend_urls,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Total-Count"],
    )
    register_exception_handlers(app)

    app.include_router(routes.router)
    app.include_router(accounts.router)
    app.include_router(products.router)
    app.include_router(cart.router, dependencies=[Depends(require_user)])
    app.include_router(orders.router, dependencies=[Depends(require_user)])
    app.include_router(users.router, dependencies=[Depends(require_user)])

    @app.get("/")
    def health():
        return {"ok": True}

    @app.post("/webhook")
    async def stripe_webhook(
        request: Request,
        stripe_signature: str = Header(None),
        db: Session = Depends(get_db),
    ):
        secret = request.app.state.settings.stripe_webhook_secret
        if not secret:
            logger.error("webhook received but STRIPE_WEBHOOK_SECRET is not configured")
            raise HTTPException(status_code=500, detail="Webhook not configured")

        payload = await request.body()
        try:
            event = stripe.Webhook.construct_event(payload, stripe_signature, secret)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid payload")
        except stripe.SignatureVerificationError:
            logger.warning("webhook signature verification failed")
            raise HTTPException(status_code=400, detail="Invalid signature")

        if hasattr(event, "to_dict"):
            event = event.to_dict()
        result = await run_in_threadpool(webhooks.handle_event, db, event)
        logger.info("webhook %s -> %s", event.get("type"), result)
        return {"ok": True, "result": result}

    Base.metadata.create_all(bind=engine)
    return app


app = create_app()


def run():
    import uvicorn

    uvicorn.run("storefront.main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8080")))
