# src/services/market_api/routes.py
"""
Маршруты HTTP API маркетплейса.
Доменные ошибки превращаются в ответы обработчиками в app.py.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status

from src.common.constants import Trade, UserRole
from src.common.exceptions import ValidationError
from src.core.geo import GeoPoint
from src.core.jobs import JobCreateDTO, JobService, JobView
from src.core.matching import MatchingService, OpenBroadcast
from src.core.portfolio import PortfolioPost, PortfolioService
from src.core.pricing import Invoice, estimate_range, get_service, list_services
from src.core.users import FeaturedPro, ProfileUpdate, PublicProfile, SignupDraft, User, UserService
from src.core.users.service import to_public_profile
from src.core.vault import PaymentMethod, VaultService
from src.core.checkout import CheckoutService
from src.infra.clients import PhotoStore
from src.services.market_api.dependencies import (
    get_checkout_service,
    get_current_user,
    get_job_service,
    get_matching_service,
    get_photo_store,
    get_portfolio_service,
    get_user_service,
    get_vault_service,
)
from src.shared.models.common import PaginationParams
from src.services.market_api.schemas import (
    CardCreateRequest,
    CheckoutRequest,
    InvoiceRequest,
    LaborRateResponse,
    LocationRequest,
    LoginRequest,
    PhotoRefResponse,
    PinSetRequest,
    PinUnlockRequest,
    PortfolioPostRequest,
    ProofRequest,
    RatingRequest,
    ServiceDTO,
    SignupRequest,
    StatusResponse,
    VaultStatusResponse,
    WalletResponse,
)


# =============================================================================
# КАТАЛОГ
# =============================================================================

catalog_router = APIRouter(prefix="/catalog", tags=["Catalog"])


@catalog_router.get("/services", response_model=list[ServiceDTO])
async def get_services(trade: Optional[Trade] = None) -> list[ServiceDTO]:
    return [ServiceDTO(service=s, estimate=estimate_range(s)) for s in list_services(trade)]


@catalog_router.get("/services/{service_id}", response_model=ServiceDTO)
async def get_service_item(service_id: str) -> ServiceDTO:
    service = get_service(service_id)
    return ServiceDTO(service=service, estimate=estimate_range(service))


# =============================================================================
# РЕГИСТРАЦИЯ И ВХОД
# =============================================================================

auth_router = APIRouter(prefix="/auth", tags=["Auth"])


@auth_router.post("/signup-code", response_model=StatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def request_signup_code(
    draft: SignupDraft,
    service: UserService = Depends(get_user_service),
) -> StatusResponse:
    await service.request_signup_code(draft)
    return StatusResponse(status="code_sent")


@auth_router.post("/signup", response_model=User, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    service: UserService = Depends(get_user_service),
) -> User:
    return await service.signup(request.draft, request.code)


@auth_router.post("/login", response_model=User)
async def login(
    request: LoginRequest,
    service: UserService = Depends(get_user_service),
) -> User:
    return await service.login(request.email, request.password)


# =============================================================================
# ПРОФИЛЬ
# =============================================================================

profile_router = APIRouter(tags=["Profile"])


@profile_router.get("/me", response_model=User)
async def get_me(user: User = Depends(get_current_user)) -> User:
    return user


@profile_router.patch("/me", response_model=User)
async def update_me(
    patch: ProfileUpdate,
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> User:
    return await service.update_profile(user.id, patch)


@profile_router.put("/me/location", status_code=status.HTTP_204_NO_CONTENT)
async def update_my_location(
    request: LocationRequest,
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> Response:
    await service.update_location(user.id, GeoPoint(latitude=request.latitude, longitude=request.longitude))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@profile_router.get("/users/{user_id}", response_model=PublicProfile)
async def get_profile(
    user_id: UUID,
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> PublicProfile:
    return await service.get_public_profile(user.id, user_id)


@profile_router.get("/pros/featured", response_model=list[FeaturedPro])
async def get_featured_pros(
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> list[FeaturedPro]:
    return await service.featured_pros(user.id)


@profile_router.get("/pros/{pro_id}/labor-rate", response_model=LaborRateResponse)
async def get_labor_rate(
    pro_id: UUID,
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> LaborRateResponse:
    return LaborRateResponse(pro_id=pro_id, labor_rate=await service.labor_rate(pro_id))


@profile_router.get("/wallet", response_model=WalletResponse)
async def get_wallet(
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> WalletResponse:
    txns = await service.list_wallet_txns(user.id, limit=pagination.limit, offset=pagination.offset)
    return WalletResponse(balance=user.wallet_balance, txns=txns)


# =============================================================================
# ХРАНИЛИЩЕ КАРТ
# =============================================================================

vault_router = APIRouter(prefix="/vault", tags=["Vault"])


@vault_router.post("/pin", response_model=VaultStatusResponse, status_code=status.HTTP_201_CREATED)
async def set_pin(
    request: PinSetRequest,
    user: User = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service),
) -> VaultStatusResponse:
    await service.set_pin(user.id, request.pin, request.confirm)
    return VaultStatusResponse(unlocked=True)


@vault_router.post("/unlock", response_model=VaultStatusResponse)
async def unlock_vault(
    request: PinUnlockRequest,
    user: User = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service),
) -> VaultStatusResponse:
    await service.unlock(user.id, request.pin)
    return VaultStatusResponse(unlocked=True)


@vault_router.post("/lock", response_model=VaultStatusResponse)
async def lock_vault(
    user: User = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service),
) -> VaultStatusResponse:
    await service.lock(user.id)
    return VaultStatusResponse(unlocked=False)


@vault_router.get("/status", response_model=VaultStatusResponse)
async def vault_status(
    user: User = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service),
) -> VaultStatusResponse:
    return VaultStatusResponse(unlocked=await service.is_unlocked(user.id))


@vault_router.get("/cards", response_model=list[PaymentMethod])
async def list_cards(
    user: User = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service),
) -> list[PaymentMethod]:
    return await service.list_methods(user.id)


@vault_router.post("/cards", response_model=PaymentMethod, status_code=status.HTTP_201_CREATED)
async def add_card(
    request: CardCreateRequest,
    user: User = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service),
) -> PaymentMethod:
    return await service.add_card(user.id, request.number, request.exp_month, request.exp_year)


@vault_router.delete("/cards/{method_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_card(
    method_id: UUID,
    user: User = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service),
) -> Response:
    await service.remove_card(user.id, method_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# ФОТО
# =============================================================================

photos_router = APIRouter(prefix="/photos", tags=["Photos"])


@photos_router.post("", response_model=PhotoRefResponse, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    request: Request,
    user: User = Depends(get_current_user),
    store: PhotoStore = Depends(get_photo_store),
) -> PhotoRefResponse:
    """Тело запроса: байты изображения, тип из Content-Type."""
    content = await request.body()
    if not content:
        raise ValidationError("Empty photo upload", code="empty_photo")
    content_type = request.headers.get("content-type", "image/jpeg")
    return PhotoRefResponse(ref=await store.store_photo(content, content_type))


# =============================================================================
# ЗАЯВКИ
# =============================================================================

jobs_router = APIRouter(prefix="/jobs", tags=["Jobs"])


@jobs_router.post("", response_model=JobView, status_code=status.HTTP_201_CREATED)
async def create_job(
    dto: JobCreateDTO,
    user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> JobView:
    return await service.create_job(user.id, dto)


@jobs_router.get("", response_model=list[JobView])
async def list_my_jobs(
    user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> list[JobView]:
    if user.role == UserRole.PRO:
        return await service.list_pro_jobs(user.id)
    return await service.list_customer_jobs(user.id)


@jobs_router.get("/checkout-needed", response_model=list[JobView])
async def list_checkout_needed(
    user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> list[JobView]:
    return await service.list_checkout_needed(user.id)


@jobs_router.get("/{job_id}", response_model=JobView)
async def get_job(
    job_id: UUID,
    user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> JobView:
    return await service.get_job(job_id, user.id)


@jobs_router.post("/{job_id}/arrive", response_model=JobView)
async def mark_arrived(
    job_id: UUID,
    user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> JobView:
    return await service.mark_arrived(job_id, user.id)


@jobs_router.put("/{job_id}/invoice", response_model=JobView)
async def save_invoice(
    job_id: UUID,
    request: InvoiceRequest,
    user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> JobView:
    return await service.save_invoice(job_id, user.id, Invoice(**request.model_dump()))


@jobs_router.post("/{job_id}/request-payment", response_model=JobView)
async def request_payment(
    job_id: UUID,
    user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> JobView:
    return await service.request_payment(job_id, user.id)


@jobs_router.post("/{job_id}/checkout", response_model=JobView)
async def checkout(
    job_id: UUID,
    request: CheckoutRequest,
    user: User = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
) -> JobView:
    return await service.checkout(job_id, user.id, request.payment_method_id)


@jobs_router.post("/{job_id}/complete", response_model=JobView)
async def complete_job(
    job_id: UUID,
    user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> JobView:
    return await service.complete(job_id, user.id)


@jobs_router.post("/{job_id}/rating", response_model=PublicProfile)
async def rate_job(
    job_id: UUID,
    request: RatingRequest,
    user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> PublicProfile:
    pro = await service.submit_rating(job_id, user.id, request.rating)
    return to_public_profile(pro, user.id)


@jobs_router.post("/{job_id}/proof", response_model=JobView)
async def upload_proof(
    job_id: UUID,
    request: ProofRequest,
    user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> JobView:
    return await service.upload_proof(job_id, user.id, request.photo_ref)


# =============================================================================
# МАРКЕТ
# =============================================================================

market_router = APIRouter(prefix="/market", tags=["Market"])


@market_router.get("/broadcasts", response_model=list[OpenBroadcast])
async def list_open_broadcasts(
    user: User = Depends(get_current_user),
    service: MatchingService = Depends(get_matching_service),
) -> list[OpenBroadcast]:
    return await service.list_open(user.id)


@market_router.post("/broadcasts/{broadcast_id}/claim", response_model=JobView)
async def claim_broadcast(
    broadcast_id: UUID,
    user: User = Depends(get_current_user),
    service: MatchingService = Depends(get_matching_service),
) -> JobView:
    return await service.claim(broadcast_id, user.id)


# =============================================================================
# ПОРТФОЛИО
# =============================================================================

portfolio_router = APIRouter(prefix="/portfolio", tags=["Portfolio"])


@portfolio_router.post("/posts", response_model=PortfolioPost, status_code=status.HTTP_201_CREATED)
async def create_post(
    request: PortfolioPostRequest,
    user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioPost:
    return await service.create_post(user.id, request.caption or "", request.photo_refs)


@portfolio_router.get("/{pro_id}/posts", response_model=list[PortfolioPost])
async def list_posts(
    pro_id: UUID,
    user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
) -> list[PortfolioPost]:
    return await service.list_posts(pro_id)


@portfolio_router.post("/posts/{post_id}/like", response_model=PortfolioPost)
async def like_post(
    post_id: UUID,
    user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioPost:
    return await service.like_post(post_id)


routers = [
    catalog_router,
    auth_router,
    profile_router,
    vault_router,
    photos_router,
    jobs_router,
    market_router,
    portfolio_router,
]
