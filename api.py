import logging
import threading
from typing import Annotated, List, Optional

from fastapi import Cookie, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field

import config
import persistence
from auth import AuthGateway, FailedAttempts, client_identity, session_cookie_params, session_person
from errors import CredentialRejected, SantaError, ValidationError
from santa import MAX_WISHES, SecretSantaStore
from wishlist import WishListService

config.setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Secret Santa API")

# --------------------------
# Process-wide state
# --------------------------

_store: Optional[SecretSantaStore] = None
_store_lock = threading.Lock()
_failed_attempts = FailedAttempts()


def get_store() -> SecretSantaStore:
  """The store, loaded from storage (or generated from defaults) on first use."""
  global _store
  with _store_lock:
    if _store is None:
      _store = SecretSantaStore(persistence.backend_from_config())
  _store.initialize(config.DEFAULT_PARTICIPANTS)
  return _store


def get_failed_attempts() -> FailedAttempts:
  return _failed_attempts


def get_gateway(
  store: SecretSantaStore = Depends(get_store),
  attempts: FailedAttempts = Depends(get_failed_attempts),
) -> AuthGateway:
  return AuthGateway(store, attempts)


def get_wishlists(store: SecretSantaStore = Depends(get_store)) -> WishListService:
  return WishListService(store)


SessionCookie = Annotated[Optional[str], Cookie(alias=config.SESSION_COOKIE)]

# --------------------------
# Request models
# --------------------------

class InitRequest(BaseModel):
  participants: Optional[List[str]] = Field(
    default=None, validation_alias=AliasChoices("participants", "familyMembers")
  )

class VerifyRequest(BaseModel):
  credential: Optional[str] = Field(
    default=None, validation_alias=AliasChoices("credential", "password")
  )

class WishListByNameRequest(BaseModel):
  person_name: Optional[str] = Field(default=None, validation_alias="personName")

class SubmitWishListRequest(BaseModel):
  wish_list: List[str] = Field(validation_alias="wishList", max_length=MAX_WISHES)


# --------------------------
# Helpers
# --------------------------

def send_json(status_code: int, payload: dict) -> JSONResponse:
  return JSONResponse(status_code=status_code, content=payload)


def unique_names(names: List[str]) -> List[str]:
  seen = {}
  for name in names:
    name = name.strip()
    if name:
      seen.setdefault(name, None)
  return list(seen)


@app.exception_handler(SantaError)
async def santa_error_handler(request: Request, exc: SantaError):
  payload = {"success": False, "message": exc.message}
  if isinstance(exc, CredentialRejected):
    payload["attempts"] = exc.attempts
  return send_json(exc.status_code, payload)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
  return send_json(400, {"success": False, "message": "Invalid request body"})


# --------------------------
# Endpoints
# --------------------------

# Routes are plain `def`: store and persistence calls block.

def regenerate_from_request(req: InitRequest, store: SecretSantaStore):
  if req.participants is None or len(req.participants) < 2:
    raise ValidationError("Please provide at least 2 participants")

  participants = unique_names(req.participants)
  if len(participants) < 2:
    raise ValidationError("Please provide at least 2 unique participants")

  logger.info("Regenerating assignments for %d participants", len(participants))
  credentials = store.regenerate(participants)
  message = f"Secret Santa assignments initialized for {len(participants)} participants"
  return message, credentials


@app.post("/init")
def initialize(req: InitRequest, store: SecretSantaStore = Depends(get_store)):
  message, credentials = regenerate_from_request(req, store)
  return {
    "success": True,
    "message": message,
    "credentials": [{"person": person, "credential": credential} for person, credential in credentials],
  }


@app.post("/initialize")
def initialize_family(req: InitRequest, store: SecretSantaStore = Depends(get_store)):
  message, credentials = regenerate_from_request(req, store)
  return {
    "success": True,
    "message": message,
    "passwordAssignments": [{"person": person, "password": credential} for person, credential in credentials],
  }


@app.post("/verify-credential")
@app.post("/verify-password")
def verify_credential(
  req: VerifyRequest,
  request: Request,
  response: Response,
  gateway: AuthGateway = Depends(get_gateway),
):
  person, giftee = gateway.verify(req.credential, client_identity(request.headers))
  response.set_cookie(**session_cookie_params(person))
  return {
    "success": True,
    "assignedGiftee": giftee,
    "assignedSanta": giftee,
    "personName": person,
  }


@app.post("/get-wishlist")
def get_wishlist(
  session: SessionCookie = None,
  wishlists: WishListService = Depends(get_wishlists),
):
  person = session_person(session)
  return {"success": True, "wishList": wishlists.own(person)}


@app.post("/get-wishlist-by-name")
def get_wishlist_by_name(
  req: WishListByNameRequest,
  session: SessionCookie = None,
  wishlists: WishListService = Depends(get_wishlists),
):
  if not req.person_name:
    raise ValidationError("Person name is required")
  session_person(session)
  return {"success": True, "wishList": wishlists.for_name(req.person_name)}


@app.post("/submit-wishlist")
def submit_wishlist(
  req: SubmitWishListRequest,
  session: SessionCookie = None,
  wishlists: WishListService = Depends(get_wishlists),
):
  person = session_person(session)
  return {"success": wishlists.submit(person, req.wish_list)}


@app.post("/clearall")
def clear_all(store: SecretSantaStore = Depends(get_store)):
  store.clear_all()
  return {"success": True, "message": "Cleared"}
