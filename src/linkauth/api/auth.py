"""Authentication endpoints."""

from fastapi import APIRouter, Response
from pydantic import BaseModel

from linkauth.api.cookies import clear_session_cookie, set_session_cookie
from linkauth.api.deps import ClockDep, CurrentAccount, IssuerDep, SessionDep, SessionIssuerDep
from linkauth.config import settings
from linkauth.models import AccountRead
from linkauth.schemas import ErrorResponse, SuccessResponse
from linkauth.services.magic_link import IssuedLink, IssueMode, verify_magic_link

router = APIRouter()


class SignupRequest(BaseModel):
    """Request body for signup."""

    email: str
    name: str | None = None


class EmailRequest(BaseModel):
    """Request body for login and resend."""

    email: str


class VerifyRequest(BaseModel):
    """Request body for token verification."""

    token: str


class AccountSummary(BaseModel):
    """Account details echoed back after issuing a link."""

    email: str
    name: str | None


class IssueResponse(BaseModel):
    """Response for signup, login and resend."""

    success: bool = True
    message: str
    data: AccountSummary
    # Only filled when EXPOSE_MAGIC_LINKS is set in development
    magic_link: str | None = None


class AccountIdentity(BaseModel):
    """Identity returned after a successful verification."""

    id: str
    email: str
    name: str | None
    verified: bool


class VerifyResponse(BaseModel):
    """Response for a successful verification."""

    success: bool = True
    message: str
    user: AccountIdentity


def _issue_response(issued: IssuedLink, message: str) -> IssueResponse:
    response = IssueResponse(
        message=message,
        data=AccountSummary(email=issued.account.email, name=issued.account.name),
    )
    if settings.echo_magic_links:
        response.magic_link = issued.link
    return response


@router.post(
    "/signup",
    response_model=IssueResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def signup(request: SignupRequest, session: SessionDep, issuer: IssuerDep):
    """
    Create an account, or refresh the link of an unverified one.

    Fails with 409 if the account is already verified.
    """
    issued = await issuer.issue(session, request.email, request.name, mode=IssueMode.SIGNUP)
    return _issue_response(issued, "Verification link sent to your email! Check your inbox.")


@router.post(
    "/login",
    response_model=IssueResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def login(request: EmailRequest, session: SessionDep, issuer: IssuerDep):
    """
    Request a magic link for a verified account.

    Missing and unverified accounts both return the same 404.
    """
    issued = await issuer.issue(session, request.email, mode=IssueMode.LOGIN)
    return _issue_response(issued, "Login link sent to your email! Check your inbox.")


@router.post(
    "/resend-verification",
    response_model=IssueResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def resend_verification(request: EmailRequest, session: SessionDep, issuer: IssuerDep):
    """Send a new verification link to an unverified account."""
    issued = await issuer.issue(session, request.email, mode=IssueMode.RESEND)
    return _issue_response(issued, "New verification link sent to your email!")


async def _verify(
    token: str,
    response: Response,
    session: SessionDep,
    session_issuer: SessionIssuerDep,
    clock: ClockDep,
) -> VerifyResponse:
    account = await verify_magic_link(session, token, clock=clock)
    set_session_cookie(response, session_issuer.create_token(account))
    return VerifyResponse(
        message="Successfully authenticated! Welcome back!",
        user=AccountIdentity(
            id=account.id,
            email=account.email,
            name=account.name,
            verified=account.verified,
        ),
    )


@router.get("/verify", response_model=VerifyResponse, responses={400: {"model": ErrorResponse}})
async def verify_link(
    token: str,
    response: Response,
    session: SessionDep,
    session_issuer: SessionIssuerDep,
    clock: ClockDep,
):
    """Verify a magic link token from the link's query string and start a session."""
    return await _verify(token, response, session, session_issuer, clock)


@router.post("/verify", response_model=VerifyResponse, responses={400: {"model": ErrorResponse}})
async def verify(
    request: VerifyRequest,
    response: Response,
    session: SessionDep,
    session_issuer: SessionIssuerDep,
    clock: ClockDep,
):
    """Verify a magic link token and start a session."""
    return await _verify(request.token, response, session, session_issuer, clock)


@router.get("/me", response_model=AccountRead, responses={401: {"model": ErrorResponse}})
async def get_current_account_info(account: CurrentAccount):
    """Get current authenticated account info."""
    return AccountRead.model_validate(account)


@router.post("/logout", response_model=SuccessResponse)
async def logout(response: Response):
    """
    Logout endpoint.

    Sessions are stateless, so this only clears the client's cookie.
    """
    clear_session_cookie(response)
    return SuccessResponse(message="Successfully logged out")
