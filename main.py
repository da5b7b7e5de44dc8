import os
import logging
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

import config
import database
from database import get_db, get_documents, serialize
from errors import ServiceError
from identity import IdentityProvider, get_identity
from auth import ROLE_COOKIE, TOKEN_COOKIE, ensure_self_or_admin, extract_token, get_current_user, require
from schemas import (
    AssignFamiliesRequest, CheckRoleRequest, ChildCreate, ChildUpdate, ExpertCreate, ExpertProfileUpdate,
    FamilyCreate, FamilyProfileUpdate, FamilyReview, LoginRequest, ReportCreate, ReportUpdate, SetRoleRequest,
    UserIdentity, UserRoleRequest,
)
import accounts
import assignments
import children
import claims
import media
import reconcile
import reports

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="Family Guidance API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
def read_root():
    return {"message": "Family Guidance Backend Running"}


@app.get("/test")
def test_database():
    db = database.db
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "identity_backend": config.IDENTITY_BACKEND,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = db.name if hasattr(db, 'name') else "Unknown"
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


# Sessions
@app.post("/auth/login")
def auth_login(payload: LoginRequest, response: Response, identity: IdentityProvider = Depends(get_identity)):
    token = identity.sign_in(payload.email, payload.password)
    user = identity.verify_token(token)
    max_age = config.SESSION_DAYS * 24 * 3600
    response.set_cookie(TOKEN_COOKIE, token, max_age=max_age, httponly=True, samesite="lax")
    # read by the frontend for redirects only, never trusted server side
    response.set_cookie(ROLE_COOKIE, user.role or "", max_age=max_age, samesite="lax")
    return {"token": token, "uid": user.uid, "email": user.email, "role": user.role}


@app.post("/auth/logout")
def auth_logout(request: Request, response: Response, identity: IdentityProvider = Depends(get_identity)):
    token = extract_token(request)
    if token:
        identity.sign_out(token)
    response.delete_cookie(TOKEN_COOKIE)
    response.delete_cookie(ROLE_COOKIE)
    return {"success": True}


@app.get("/auth/me")
def auth_me(user: UserIdentity = Depends(get_current_user)):
    return user.model_dump()


# Accounts
@app.post("/create-expert")
def create_expert(payload: ExpertCreate, db=Depends(get_db), identity: IdentityProvider = Depends(get_identity),
                  user: UserIdentity = Depends(require("accounts:create"))):
    uid = accounts.create_expert(db, identity, payload)
    return {"success": True, "uid": uid, "message": "Expert created"}


@app.post("/create-family")
def create_family(payload: FamilyCreate, db=Depends(get_db), identity: IdentityProvider = Depends(get_identity),
                  user: UserIdentity = Depends(require("accounts:create"))):
    uid = accounts.create_family(db, identity, payload)
    return {"success": True, "uid": uid, "message": "Family created"}


@app.post("/update-expert-profile")
def update_expert_profile(payload: ExpertProfileUpdate, db=Depends(get_db),
                          user: UserIdentity = Depends(require("expert-profile:write"))):
    uid = payload.user_id or user.uid
    ensure_self_or_admin(user, uid)
    accounts.update_expert_profile(db, uid, payload)
    return {"success": True, "message": "Profile updated"}


@app.post("/update-family-profile")
def update_family_profile(payload: FamilyProfileUpdate, db=Depends(get_db),
                          user: UserIdentity = Depends(require("family-profile:write"))):
    uid = payload.user_id or user.uid
    ensure_self_or_admin(user, uid)
    accounts.update_family_profile(db, uid, payload)
    return {"success": True, "message": "Profile updated"}


# Roles
@app.post("/set-user-role")
def set_user_role(payload: SetRoleRequest, identity: IdentityProvider = Depends(get_identity),
                  user: UserIdentity = Depends(require("roles:manage"))):
    updated = claims.set_user_role(identity, payload.uid, payload.role)
    return {"success": True, "message": "Role assigned", "user": updated.model_dump()}


@app.post("/user-role")
def user_role(payload: UserRoleRequest, identity: IdentityProvider = Depends(get_identity),
              user: UserIdentity = Depends(require("roles:manage"))):
    if not payload.action:
        raise HTTPException(status_code=400, detail="action required")
    if payload.action == "check":
        if not payload.email:
            raise HTTPException(status_code=400, detail="email required")
        found = claims.get_user_role(identity, email=payload.email)
        return {"success": True, "user": found.model_dump()}
    if payload.action == "set":
        if not payload.uid or not payload.role:
            raise HTTPException(status_code=400, detail="uid and role required")
        updated = claims.set_user_role(identity, payload.uid, payload.role)
        return {"success": True, "message": f"Role set to {payload.role}", "user": updated.model_dump()}
    raise HTTPException(status_code=400, detail="Invalid action")


@app.post("/check-role")
def check_role(payload: CheckRoleRequest, identity: IdentityProvider = Depends(get_identity),
               user: UserIdentity = Depends(require("roles:check"))):
    ensure_self_or_admin(user, payload.uid)
    found = claims.get_user_role(identity, uid=payload.uid)
    return {"success": True, "user": found.model_dump()}


# Directory
@app.get("/experts")
def list_experts(db=Depends(get_db), user: UserIdentity = Depends(require("directory:read"))):
    return get_documents(db, "experts")


@app.get("/experts/{expert_id}/families")
def list_expert_families(expert_id: str, db=Depends(get_db),
                         user: UserIdentity = Depends(require("expert-families:read"))):
    ensure_self_or_admin(user, expert_id)
    expert = db["experts"].find_one({"_id": expert_id})
    if not expert:
        raise HTTPException(status_code=404, detail="Expert not found")
    return [{"id": fid, **snap} for fid, snap in (expert.get("families") or {}).items()]


@app.get("/families")
def list_families(db=Depends(get_db), user: UserIdentity = Depends(require("directory:read"))):
    return get_documents(db, "families")


@app.get("/families/{family_id}")
def get_family(family_id: str, db=Depends(get_db), user: UserIdentity = Depends(require("family:read"))):
    family = db["families"].find_one({"_id": family_id})
    if not family:
        raise HTTPException(status_code=404, detail="Family not found")
    allowed = (
        user.role == "admin"
        or user.uid == family_id
        or (user.role == "expert" and user.uid in (family.get("assignedExperts") or {}))
    )
    if not allowed:
        raise HTTPException(status_code=403, detail="Unauthorized access")
    return serialize(family)


# Children
@app.post("/create-child")
@app.post("/children")
def create_child(payload: ChildCreate, db=Depends(get_db), user: UserIdentity = Depends(require("children:write"))):
    child_id = children.create_child(db, payload)
    return {"success": True, "childId": child_id, "message": "Child created"}


@app.get("/children")
def list_children(db=Depends(get_db), user: UserIdentity = Depends(require("directory:read"))):
    return get_documents(db, "children")


@app.get("/expert-children")
def list_expert_children(expertId: Optional[str] = None, db=Depends(get_db),
                         user: UserIdentity = Depends(require("children:read"))):
    if not expertId:
        raise HTTPException(status_code=400, detail="expertId required")
    ensure_self_or_admin(user, expertId)
    # stored as scalar ids in an array, so filter directly
    return get_documents(db, "children", {"expertIds": expertId})


@app.post("/update-child")
def update_child(payload: ChildUpdate, db=Depends(get_db), user: UserIdentity = Depends(require("children:write"))):
    result = children.update_child(db, payload)
    return {"success": True, "message": "Child updated", **result}


# Assignments
@app.post("/assign-families")
def assign_families(payload: AssignFamiliesRequest, db=Depends(get_db),
                    user: UserIdentity = Depends(require("assignments:write"))):
    result = assignments.assign_families(db, payload.expert_email, payload.family_emails)
    return {"success": True, **result}


# Media
@app.post("/media")
def upload_media(file: UploadFile = File(...), store=Depends(media.get_media_store), db=Depends(get_db),
                 user: UserIdentity = Depends(require("media:write"))):
    saved = store.save(file.filename, file.file.read(), file.content_type)
    media.record_upload(db, saved, user)
    return saved


@app.get("/media/{name:path}")
def get_media(name: str, store=Depends(media.get_media_store), db=Depends(get_db),
              user: UserIdentity = Depends(require("reports:read"))):
    path = store.path_for(name)
    if not media.can_fetch(db, user, name, store.url_for(name)):
        raise HTTPException(status_code=403, detail="Unauthorized access")
    return FileResponse(path)


# Reports
@app.post("/reports")
def create_report(payload: ReportCreate, db=Depends(get_db), user: UserIdentity = Depends(require("reports:write"))):
    report_id = reports.create_report(db, user, payload)
    return {"success": True, "id": report_id}


@app.get("/reports")
def list_reports(db=Depends(get_db), user: UserIdentity = Depends(require("reports:read"))):
    return reports.list_reports_for(db, user)


@app.get("/all-reports")
def list_all_reports(approved: Optional[bool] = None, db=Depends(get_db),
                     user: UserIdentity = Depends(require("reports:manage"))):
    return reports.list_all_reports(db, approved)


@app.get("/reports/{report_id}.pdf")
def report_pdf(report_id: str, db=Depends(get_db), user: UserIdentity = Depends(require("reports:read"))):
    report = reports.get_report(db, report_id)
    if not reports.can_view(user, report):
        raise HTTPException(status_code=403, detail="Unauthorized access")
    pdf = reports.render_report_pdf(report)
    headers = {"Content-Disposition": f"inline; filename=report_{report_id}.pdf"}
    return Response(content=pdf, media_type="application/pdf", headers=headers)


@app.get("/reports/{report_id}")
def get_report(report_id: str, db=Depends(get_db), user: UserIdentity = Depends(require("reports:read"))):
    report = reports.get_report(db, report_id)
    if not reports.can_view(user, report):
        raise HTTPException(status_code=403, detail="Unauthorized access")
    return report


@app.put("/reports/{report_id}")
def update_report(report_id: str, payload: ReportUpdate, db=Depends(get_db),
                  user: UserIdentity = Depends(require("reports:manage"))):
    return reports.update_report(db, report_id, payload)


@app.post("/reports/{report_id}/family-review")
def review_report(report_id: str, payload: FamilyReview, db=Depends(get_db),
                  user: UserIdentity = Depends(require("reports:review"))):
    return reports.review_report(db, user, report_id, payload)


# Maintenance
@app.post("/admin/reconcile")
def run_reconcile(db=Depends(get_db), user: UserIdentity = Depends(require("maintenance:run"))):
    return {"success": True, "repairs": reconcile.reconcile(db)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
