"""
api/routes/v1/users.py -- User management routes.

Routes:
  POST   /users              -- create a user with any role        (manage_users)
  GET    /users              -- filtered, sorted, paginated list   (read_users)
  GET    /users/{user_id}    -- one user                           (read_users or owner)
  PATCH  /users/{user_id}    -- update name/last_name/email/password (manage_users or owner)
  DELETE /users/{user_id}    -- delete                             (manage_users or owner)

The "or owner" part is not written here: authorize() compares the user_id
path parameter with the caller's id before raising Forbidden.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, Response

from api.limiter import DEFAULT_LIMIT, limiter
from api.models import USER_ID_PATTERN, RoleEnum, UserCreate, UserPageResponse, UserPatch, UserResponse
from auth.dependencies import authorize
from auth.models import Permission, User
from auth.users import UserService
from core.errors import BadRequest, NotFound
from core.query import DEFAULT_LIMIT as DEFAULT_PAGE_SIZE
from core.query import MAX_LIMIT, MAX_PAGE, QueryOptions, parse_sort

router = APIRouter()

UserId = Annotated[str, Path(pattern=USER_ID_PATTERN)]


# ---------------------------------------------------------------------------
# POST /users -- create
# ---------------------------------------------------------------------------


@limiter.limit(DEFAULT_LIMIT)
@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    _: User = Depends(authorize(Permission.MANAGE_USERS)),
) -> UserResponse:
    users: UserService = request.app.state.users
    user = users.create_user(
        email=body.email,
        password=body.password,
        name=body.name,
        last_name=body.last_name,
        role=body.role.value,
    )
    return UserResponse.from_user(user)


# ---------------------------------------------------------------------------
# GET /users -- list
# ---------------------------------------------------------------------------


@limiter.limit(DEFAULT_LIMIT)
@router.get("/users", response_model=UserPageResponse)
def list_users(
    request: Request,
    name: Annotated[Optional[str], Query(max_length=50)] = None,
    role: Optional[RoleEnum] = None,
    sort: Annotated[Optional[str], Query(max_length=200, pattern=r"^[\w:,\- ]*$")] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_LIMIT)] = DEFAULT_PAGE_SIZE,
    page: Annotated[int, Query(ge=1, le=MAX_PAGE)] = 1,
    _: User = Depends(authorize(Permission.READ_USERS)),
) -> UserPageResponse:
    """Return one page of users.

    sort takes "field:asc,field2:desc". Filters are exact matches.
    """
    users: UserService = request.app.state.users
    filters: dict[str, str] = {}
    if name is not None:
        filters["name"] = name
    if role is not None:
        filters["role"] = role.value
    try:
        options = QueryOptions(sort=parse_sort(sort), limit=limit, page=page)
        result = users.query_users(filters, options)
    except ValueError as exc:
        raise BadRequest(str(exc)) from exc
    return UserPageResponse.from_page(result)


# ---------------------------------------------------------------------------
# /users/{user_id}
# ---------------------------------------------------------------------------


@limiter.limit(DEFAULT_LIMIT)
@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    request: Request,
    user_id: UserId,
    _: User = Depends(authorize(Permission.READ_USERS)),
) -> UserResponse:
    users: UserService = request.app.state.users
    user = users.get_user_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    return UserResponse.from_user(user)


@limiter.limit(DEFAULT_LIMIT)
@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: UserId,
    body: UserPatch,
    _: User = Depends(authorize(Permission.MANAGE_USERS)),
) -> UserResponse:
    users: UserService = request.app.state.users
    user = users.update_user_by_id(user_id, **body.model_dump(exclude_none=True))
    return UserResponse.from_user(user)


@limiter.limit(DEFAULT_LIMIT)
@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: UserId,
    _: User = Depends(authorize(Permission.MANAGE_USERS)),
) -> Response:
    users: UserService = request.app.state.users
    users.delete_user_by_id(user_id)
    return Response(status_code=204)
