"""FastAPI application — Twilio voice webhooks plus the reporting API.

Endpoints:

  POST /voice                     Twilio webhook for an incoming call
  POST /voice/step/{step}         every later step of the call flow
  GET  /health                    health check
  GET  /api/stats/today           today's call counters          (admin)
  GET  /api/stats?start=&end=     counters summed over a period  (admin)
  GET  /api/logs                  dates with a daily log         (admin)
  GET  /api/logs/{date}           one daily log                  (admin)
  GET  /api/appointments          every stored appointment       (admin)
  GET  /api/business-status       open/closed right now          (admin)
  GET  /api/reminders             reminder log                   (admin)
  POST /api/reminders/test/{phone}  place a reminder call now    (admin)

The call flow:
  1. Incoming call hits POST /voice, which logs it and renders main_menu
  2. Each TwiML document's <Gather>/<Redirect>/<Record> points at the next
     /voice/step/{step} address, with the Session Context in its query string
  3. A step that ends the call answers with <Say> then <Hangup>
"""

from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
import re
import time
from contextlib import asynccontextmanager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from twilio.rest import Client

from ivr.auth import require_admin_token
from ivr.business_hours import BusinessHours
from ivr.call_log import DailyCallLog
from ivr.config import Settings, settings
from ivr.controller import FlowController
from ivr.flows.base import CallServices
from ivr.reminders import ReminderLog, ReminderLogError, ReminderScheduler
from ivr.responder import build_responder
from ivr.stores.base import AppointmentStore, AppointmentStoreError
from ivr.stores.google_sheets import GoogleSheetsAppointmentStore
from ivr.stores.json_file import JsonFileAppointmentStore
from ivr.telephony.base import LogOnlyNotifier, NotificationError
from ivr.telephony.twilio_client import TwilioCallPlacer, TwilioNotifier

log = logging.getLogger("ivr.app")

_START_TIME = time.time()
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def build_store(config: Settings) -> AppointmentStore:
    if config.google_sheets_spreadsheet_id and config.google_service_account_json:
        log.info("Appointments stored in Google Sheets (%s)", config.google_sheets_worksheet)
        return GoogleSheetsAppointmentStore(
            spreadsheet_id=config.google_sheets_spreadsheet_id,
            service_account_path=config.google_service_account_json,
            worksheet=config.google_sheets_worksheet,
        )
    log.info("Appointments stored in %s", config.appointments_path)
    return JsonFileAppointmentStore(config.appointments_path)


def build_services(config: Settings, twilio: Client | None = None) -> CallServices:
    """Wire the collaborators the call flow needs from configuration."""
    if twilio is not None:
        notifier = TwilioNotifier(twilio, config.twilio_phone_number, config.admin_numbers)
    else:
        notifier = LogOnlyNotifier(config.admin_numbers)
    return CallServices(
        settings=config,
        store=build_store(config),
        notifier=notifier,
        hours=BusinessHours.from_settings(config),
        call_log=DailyCallLog(config.daily_logs_dir, config.business_timezone),
        responder=build_responder(config),
    )


def build_reminders(config: Settings, services: CallServices, twilio: Client | None) -> ReminderScheduler | None:
    if not config.reminders_enabled:
        return None
    if twilio is None:
        log.warning("Reminder calls disabled: Twilio is not configured")
        return None
    return ReminderScheduler(
        store=services.store,
        call_placer=TwilioCallPlacer(twilio, config.twilio_phone_number),
        reminder_log=ReminderLog(config.reminders_log_path),
        hours=services.hours,
        settings=config,
    )


def create_app(
    services: CallServices | None = None,
    reminders: ReminderScheduler | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    With no arguments everything is built from ``settings``; tests pass
    their own services (and optionally a scheduler).
    """
    if services is None:
        for warning in settings.validate_startup():
            log.warning(warning)
        twilio = (
            Client(settings.twilio_account_sid, settings.twilio_auth_token)
            if settings.twilio_configured
            else None
        )
        services = build_services(settings, twilio)
        reminders = build_reminders(settings, services, twilio)

    config = services.settings
    controller = FlowController(services)
    reminder_log = reminders.reminder_log if reminders else ReminderLog(config.reminders_log_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if reminders:
            reminders.start()
        log.info("%s IVR ready (open now: %s)", config.business_name, services.is_open())
        yield
        if reminders:
            await reminders.stop()

    app = FastAPI(
        title=f"{config.business_name} IVR",
        description="Phone menu webhooks, appointment booking and call reporting",
        version="0.1.0",
        lifespan=lifespan,
    )

    # ── Health check ───────────────────────────────────────────

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return f"{config.business_name} IVR is running."

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    # ── Twilio voice webhooks ──────────────────────────────────

    @app.post("/voice")
    async def voice(request: Request) -> Response:
        """Twilio webhook for incoming calls."""
        form = await request.form()
        twiml = await controller.start_call(request.query_params, form)
        return Response(content=twiml, media_type="application/xml")

    @app.post("/voice/step/{step}")
    async def voice_step(step: str, request: Request) -> Response:
        form = await request.form()
        twiml = await controller.handle(step, request.query_params, form)
        return Response(content=twiml, media_type="application/xml")

    # ── Reporting (admin) ──────────────────────────────────────

    admin = [Depends(require_admin_token)]

    @app.get("/api/stats/today", dependencies=admin)
    async def stats_today() -> dict:
        return services.call_log.today_stats()

    @app.get("/api/stats", dependencies=admin)
    async def stats_period(start: str = Query(...), end: str = Query(...)) -> dict:
        if not (_DATE_RE.match(start) and _DATE_RE.match(end)):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Dates must be YYYY-MM-DD")
        return services.call_log.stats_for_period(start, end)

    @app.get("/api/logs", dependencies=admin)
    async def log_dates() -> dict:
        return {"dates": services.call_log.log_dates()}

    @app.get("/api/logs/{date}", dependencies=admin)
    async def log_for_date(date: str) -> dict:
        if not _DATE_RE.match(date):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Date must be YYYY-MM-DD")
        day = services.call_log.log_for_date(date)
        if day is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, f"No log for {date}")
        return day

    @app.get("/api/appointments", dependencies=admin)
    async def appointments() -> dict:
        try:
            booked = await services.store.list_all()
        except AppointmentStoreError as e:
            log.error("Listing appointments failed: %s", e)
            raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Appointment store unavailable")
        return {"appointments": [a.model_dump(mode="json") for a in booked]}

    @app.get("/api/business-status", dependencies=admin)
    async def business_status() -> dict:
        return services.hours.status(services.clock())

    @app.get("/api/reminders", dependencies=admin)
    async def reminder_records() -> dict:
        try:
            records = reminder_log.records()
        except ReminderLogError as e:
            log.error("%s", e)
            raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Reminder log unreadable")
        return {"enabled": reminders is not None, "reminders": records}

    @app.post("/api/reminders/test/{phone}", dependencies=admin)
    async def test_reminder(phone: str) -> dict:
        if reminders is None:
            raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Reminder calls are disabled")
        try:
            result = await reminders.trigger_test(phone)
        except AppointmentStoreError as e:
            log.error("Test reminder lookup failed: %s", e)
            raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Appointment store unavailable")
        except NotificationError as e:
            log.error("Test reminder call failed: %s", e)
            raise HTTPException(status.HTTP_502_BAD_GATEWAY, "Could not place the call")
        if result is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "No appointment for that number")
        return result

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "ivr.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
