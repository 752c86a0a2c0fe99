from enum import Enum

from fastapi import Depends, HTTPException, Request

from piecework.deps.auth import require_auth


class Role(Enum):
    CONTRACTOR = "CONTRACTOR"
    SUPERVISOR = "SUPERVISOR"
    MANAGER = "MANAGER"


_RANK = {
    Role.CONTRACTOR: 1,
    Role.SUPERVISOR: 2,
    Role.MANAGER: 3,
}


def require_role(role: Role):
    def dependency(request: Request, _user_id: str = Depends(require_auth)):
        claim_role = request.state.claims.get("role")
        if not claim_role:
            claim_role = Role.SUPERVISOR.value

        try:
            user_role = Role(str(claim_role).upper())
        except ValueError as exc:
            raise HTTPException(status_code=403, detail="Invalid role claim") from exc

        if _RANK[user_role] < _RANK[role]:
            raise HTTPException(status_code=403, detail="Insufficient role")

        request.state.role = user_role.value
        return user_role

    return dependency
