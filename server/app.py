"""FastAPI app for queueing capture runs and serving their artifacts."""

import json
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, RedirectResponse
from starlette.middleware.sessions import SessionMiddleware
from authlib.integrations.starlette_client import OAuth

from .config import settings
from .queue import get_queue
from .schemas import RunRequest
from .storage import init_db, create_run, get_run, list_runs


app = FastAPI(title='Page Shooter')
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)

oauth = OAuth()
oauth.register(
    name='google',
    client_id=settings.google_client_id,
    client_secret=settings.google_client_secret,
    server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
    client_kwargs={'scope': 'openid email profile'}
)


def get_current_user(request: Request) -> dict:
    """Get the authenticated user from session."""
    user = request.session.get('user')
    if not user:
        raise HTTPException(status_code=401, detail='Not authenticated')
    return user


def _get_run_or_404(run_id: str) -> dict:
    run = get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail='Run not found')
    return run


@app.on_event('startup')
def on_startup() -> None:
    """Initialize DB on startup."""
    init_db()


@app.get('/health')
def health() -> dict:
    """Health check."""
    return {'status': 'ok'}


@app.get('/auth/login')
async def auth_login(request: Request):
    """Start Google OAuth flow."""
    if not settings.google_redirect_uri:
        raise HTTPException(status_code=500, detail='Missing redirect URI')
    return await oauth.google.authorize_redirect(request, settings.google_redirect_uri)


@app.get('/auth/callback')
async def auth_callback(request: Request):
    """Handle Google OAuth callback."""
    token = await oauth.google.authorize_access_token(request)
    userinfo = token.get('userinfo')
    if not userinfo:
        raise HTTPException(status_code=401, detail='No user info from Google')
    email = userinfo.get('email', '')
    domain = email.split('@')[-1].lower() if '@' in email else ''
    if settings.allowed_google_domain and domain != settings.allowed_google_domain.lower():
        raise HTTPException(status_code=403, detail='Unauthorized domain')
    request.session['user'] = {
        'email': email,
        'name': userinfo.get('name', '')
    }
    return RedirectResponse('/')


@app.get('/auth/logout')
def auth_logout(request: Request):
    """Clear session."""
    request.session.clear()
    return RedirectResponse('/')


@app.get('/api/me')
def api_me(request: Request):
    """Current user info."""
    return request.session.get('user') or {}


@app.post('/api/runs')
def create_run_job(payload: RunRequest, request: Request):
    """Queue a capture run."""
    get_current_user(request)
    if not payload.urls and not payload.sitemap:
        raise HTTPException(status_code=422, detail='Provide urls or sitemap')
    run_id = create_run(payload.target(), payload.model_dump())
    get_queue().enqueue(
        'worker.tasks.run_capture_task',
        run_id,
        payload.model_dump(),
        job_timeout=settings.job_timeout_s
    )
    return {'id': run_id, 'status': 'queued'}


@app.get('/api/runs')
def runs_list(request: Request):
    """List recent runs."""
    get_current_user(request)
    return list_runs()


@app.get('/api/runs/{run_id}')
def run_detail(run_id: str, request: Request):
    """Get run status and metadata."""
    get_current_user(request)
    return _get_run_or_404(run_id)


@app.get('/api/runs/{run_id}/manifests')
def run_manifests(run_id: str, request: Request):
    """Manifest for every domain in a finished run."""
    get_current_user(request)
    run = _get_run_or_404(run_id)
    out = {}
    for domain, path in run['manifests'].items():
        manifest_path = Path(path)
        if manifest_path.exists():
            out[domain] = json.loads(manifest_path.read_text(encoding='utf-8'))
    if not out:
        raise HTTPException(status_code=404, detail='Manifest not found')
    return out


@app.get('/api/runs/{run_id}/report/{domain}')
def run_report(run_id: str, domain: str, request: Request):
    """Download the PDF report for one domain."""
    get_current_user(request)
    run = _get_run_or_404(run_id)
    path = run['reports'].get(domain)
    if not path or not Path(path).exists():
        raise HTTPException(status_code=404, detail='Report not found')
    return FileResponse(path, media_type='application/pdf', filename=f'{domain}.pdf')


def serve() -> None:
    """Run the API under uvicorn on API_HOST:API_PORT."""
    uvicorn.run(app, host=settings.host, port=settings.port, log_level='info')
