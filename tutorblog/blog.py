#!/usr/bin/env python3
"""
A small tutorial blog: public post pages plus an owner-only admin area.
"""

import logging
import os
import secrets
from collections import defaultdict, deque
from datetime import datetime
from functools import wraps
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from time import time
from typing import DefaultDict

import click
import markdown
from flask import (
    Flask,
    Response,
    abort,
    flash,
    redirect,
    render_template_string,
    request,
    session,
    url_for,
)
from flask.logging import default_handler
from markupsafe import Markup
from werkzeug.middleware.proxy_fix import ProxyFix

from tutorblog.accounts import (
    ANONYMOUS,
    Principal,
    authenticate,
    create_account,
    display_name,
    find_account,
    find_account_by_email,
    is_admin,
    normalize_email,
    update_account,
)
from tutorblog.errors import PostNotFound, ValidationError
from tutorblog.images import make_descriptor
from tutorblog.posts import (
    add_image,
    clear_images,
    create_post,
    delete_post,
    excerpt_or_content,
    list_owned,
    list_published,
    owned_post,
    owner_stats,
    post_images,
    publish_post,
    published_post,
    remove_image,
    search_posts,
    truncate,
    unpublish_post,
    update_post,
)
from tutorblog.store import close_db, get_db, init_db

################################################################################
# Imports & constants
################################################################################

ROOT = Path(__file__).parent
DB_FILE = Path(os.environ.get("TUTORBLOG_DATABASE", str(ROOT / "blog.sqlite3")))

SECRET_FILE = ROOT / ".secret_key"
SECRET_KEY = (
    SECRET_FILE.read_text().strip() if SECRET_FILE.exists() else secrets.token_hex(32)
)
SECRET_FILE.write_text(SECRET_KEY)

SITE_NAME = os.environ.get("TUTORBLOG_SITE_NAME", "Tutorial Blog")
LOG_LEVEL = os.environ.get("TUTORBLOG_LOG_LEVEL", "INFO").upper()
RECENT_ON_HOME = 5
SEED_EMAIL = "admin@example.com"

try:
    __version__ = version("tutorblog")
except PackageNotFoundError:
    __version__ = "0.1.0-dev"

# one handler for the whole package; app.logger ("tutorblog.blog") and the
# core modules' loggers all propagate here
_pkg_log = logging.getLogger("tutorblog")
_pkg_log.setLevel(LOG_LEVEL)
if default_handler not in _pkg_log.handlers:
    _pkg_log.addHandler(default_handler)


################################################################################
# App + template filters
################################################################################
app = Flask(__name__)
app.url_map.strict_slashes = False
app.config.update(
    SECRET_KEY=SECRET_KEY,
    DATABASE=str(DB_FILE),
    SITE_NAME=SITE_NAME,
    SESSION_COOKIE_SAMESITE="Lax",
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SECURE=os.environ.get("TUTORBLOG_INSECURE_COOKIES") != "1",
)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)
app.teardown_appcontext(close_db)

MD_EXTENSIONS = [
    "pymdownx.extra",
    "pymdownx.magiclink",
    "pymdownx.tilde",
    "pymdownx.highlight",
    "pymdownx.saneheaders",
]
MD_EXTENSION_CONFIGS = {
    "pymdownx.highlight": {"guess_lang": False, "noclasses": True},
}


@app.template_filter("md")
def md_filter(text: str | None) -> Markup:
    """Render post content (Markdown) to HTML."""
    if not text:
        return Markup("")
    return Markup(
        markdown.markdown(
            text, extensions=MD_EXTENSIONS, extension_configs=MD_EXTENSION_CONFIGS
        )
    )


@app.template_filter("ts")
def ts_filter(iso: str | None) -> str:
    if not iso:
        return ""
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError:
        return iso
    return dt.strftime("%Y.%m.%d %H:%M")


def _csrf_token() -> str:
    """One token per session (rotates on login)."""
    return session.get("csrf", "")


def site_name() -> str:
    return app.config.get("SITE_NAME", SITE_NAME)


def author_name(post) -> str:
    row = find_account(post["account_id"], db=get_db())
    return display_name(row["email"] if row else None)


app.jinja_env.globals.update(
    csrf_token=_csrf_token,
    version=__version__,
    site_name=site_name,
    author_name=author_name,
    excerpt_or_content=excerpt_or_content,
    post_images=post_images,
    truncate=truncate,
)


###############################################################################
# Principal + guards
###############################################################################
def current_principal() -> Principal:
    """
    The only place that reads identity out of the session.  A session
    pointing at a vanished account is dropped.
    """
    account_id = session.get("account_id")
    if account_id is None:
        return ANONYMOUS
    if find_account(account_id, db=get_db()) is None:
        session.clear()
        return ANONYMOUS
    return Principal(account_id)


def admin_required() -> Principal:
    principal = current_principal()
    if not is_admin(principal, db=get_db()):
        flash("Access denied. Admin authentication required.")
        abort(redirect(url_for("admin_login", next=request.path)))
    return principal


def rate_limit(max_requests: int, window: int = 60):
    hits: DefaultDict[str, deque] = defaultdict(deque)

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            now = time()
            ip = client_ip()

            # forget clients that have been quiet for a whole window
            for stale in [k for k, q in hits.items() if not q or now - q[-1] > window]:
                del hits[stale]

            dq = hits[ip]
            while dq and now - dq[0] > window:
                dq.popleft()

            if len(dq) >= max_requests:
                retry_after = int(window - (now - dq[0]))
                app.logger.warning("Rate limit hit on %s from %s", request.path, ip)
                return Response(
                    "Too many requests – try again later.",
                    status=429,
                    headers={"Retry-After": str(retry_after)},
                )

            dq.append(now)
            return view(*args, **kwargs)

        wrapped.hits = hits
        return wrapped

    return decorator


def client_ip() -> str:
    """Return best-effort client IP after ProxyFix."""
    return (
        request.access_route[0] if request.access_route else request.remote_addr
    ) or "unknown"


SAFE_METHODS = {"GET", "HEAD", "OPTIONS", "TRACE"}


@app.before_request
def csrf_protect():
    # read-only verbs and anonymous sessions (the login POST) pass
    if request.method in SAFE_METHODS or not session.get("account_id"):
        return

    token = session.get("csrf", "")
    sent = request.form.get("csrf") or request.headers.get("X-CSRFToken", "")
    if not token or not secrets.compare_digest(token, sent):
        abort(403)


@app.after_request
def sec_headers(resp):
    resp.headers.update(
        {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }
    )
    return resp


###############################################################################
# CLI – schema, admin accounts, seed data
###############################################################################
@app.cli.command("init")
def cli_init():
    """Create the database tables (no-op when they exist)."""
    init_db()
    click.secho("✅  Database ready.", fg="green")


@app.cli.command("create-admin")
@click.option("--email", prompt=True, help="Admin e-mail address")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Password (at least 6 characters)",
)
def cli_create_admin(email: str, password: str):
    """Create an admin account, or promote + reset an existing one."""
    init_db()
    db = get_db()
    row = find_account_by_email(email, db=db)
    try:
        if row is None:
            create_account(email, password, admin=True, db=db)
        else:
            update_account(row["id"], admin=True, password=password, db=db)
    except ValidationError as exc:
        raise click.ClickException("; ".join(exc.messages())) from None
    click.secho(f"\n✅  Admin ready: {normalize_email(email)}", fg="green")


@app.cli.command("seed")
@click.option("--password", default="password123", show_default=True)
def cli_seed(password: str):
    """Create the demo admin account if it is missing."""
    init_db()
    db = get_db()
    if find_account_by_email(SEED_EMAIL, db=db) is not None:
        click.echo(f"Admin user already present: {SEED_EMAIL}")
        return
    try:
        create_account(SEED_EMAIL, password, admin=True, db=db)
    except ValidationError as exc:
        raise click.ClickException("; ".join(exc.messages())) from None
    click.secho(f"✅  Admin user ready: {SEED_EMAIL}", fg="green")
    click.echo(f"🔑  Password: {password}")


###############################################################################
# Templates
###############################################################################
def wrap(body: str) -> str:
    """Glue prolog + page-specific body + epilog."""
    return TEMPL_PROLOG + body + TEMPL_EPILOG


TEMPL_PROLOG = """
<!doctype html>
<html lang="en">
<title>{{ page_title ~ ' · ' if page_title }}{{ site_name() }}</title>
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta charset="utf-8">
{% if page_description %}<meta name="description" content="{{ page_description }}">{% endif %}
<style>
body{font-family:-apple-system,BlinkMacSystemFont,"Segoe UI",Roboto,sans-serif;max-width:42em;margin:2rem auto;padding:0 1rem;line-height:1.6;color:#222}
a{color:#a33}nav{display:flex;gap:1rem;margin-bottom:1.5rem;font-size:.9em}
nav form{display:inline;margin:0}nav button{font-size:1em;padding:0;border:0;background:none;color:#a33;cursor:pointer}
.flash{background:#323232;color:#fff;padding:.6rem 1rem;border-radius:.3rem;margin-bottom:1rem}
.meta{color:#888;font-size:.85em}.pill{display:inline-block;padding:0 .6em;border-radius:1em;background:#eee;font-size:.75em}
input[type=text],input[type=email],input[type=password],textarea{width:100%;box-sizing:border-box;padding:.4rem;margin-bottom:.6rem}
figure{margin:1.5rem 0}figure img,.hero img{max-width:100%}
</style>
<body>
<header>
    <h1 style="margin-bottom:.3rem"><a href="{{ url_for('index') }}" style="text-decoration:none">{{ site_name() }}</a></h1>
    <nav>
        <a href="{{ url_for('blog_index') }}">Blog</a>
        {% if session.get('account_id') %}
            <a href="{{ url_for('admin_dashboard') }}">Dashboard</a>
            <a href="{{ url_for('admin_posts') }}">My posts</a>
            <form method="post" action="{{ url_for('admin_logout') }}">
                <input type="hidden" name="csrf" value="{{ csrf_token() }}">
                <button>Logout</button>
            </form>
        {% else %}
            <a href="{{ url_for('admin_login') }}">Login</a>
        {% endif %}
    </nav>
</header>
{% with msgs = get_flashed_messages() %}
{% if msgs %}<div class="flash" role="status">{{ msgs|join('<br>'|safe) }}</div>{% endif %}
{% endwith %}
<main>
"""

TEMPL_EPILOG = """
</main>
<footer class="meta" style="margin-top:3rem;border-top:1px solid #ddd;padding-top:1rem">
    tutorblog v{{ version }}
</footer>
</body>
</html>
"""

TEMPL_POST_LIST = """
{% for p in posts %}
<article style="margin-bottom:2rem">
    <h2 style="margin-bottom:.2rem"><a href="{{ url_for('blog_post', ref=p['slug']) }}">{{ p['title'] }}</a></h2>
    <div class="meta">{{ display_name(p['author_email']) }} · {{ (p['published_at'] or p['created_at'])|ts }}</div>
    <p>{{ excerpt_or_content(p) }}</p>
</article>
{% else %}
<p>No posts yet.</p>
{% endfor %}
"""

TEMPL_INDEX = wrap("""
<h2>Latest posts</h2>
""" + TEMPL_POST_LIST + """
<p><a href="{{ url_for('blog_index') }}">All posts →</a></p>
""")

TEMPL_BLOG_INDEX = wrap("""
<form action="{{ url_for('blog_index') }}" method="get">
    <input type="text" name="q" value="{{ q }}" placeholder="Search posts" aria-label="Search posts">
</form>
{% if q %}<p class="meta">{{ posts|length }} result{{ '' if posts|length == 1 else 's' }} for “{{ q }}”</p>{% endif %}
""" + TEMPL_POST_LIST)

TEMPL_IMAGES = """
{% set imgs = post_images(p) %}
{% if imgs.has_hero() %}{% set h = imgs.hero() %}
<figure class="hero">
    <img src="{{ h['src'] }}" alt="{{ h['alt'] }}">
    {% if h['caption'] %}<figcaption>{{ h['caption'] }}</figcaption>{% endif %}
</figure>
{% endif %}
"""

TEMPL_INDEXED_IMAGES = """
{% for img in post_images(p).indexed() %}
<figure id="{{ img['position'] }}">
    <img src="{{ img['src'] }}" alt="{{ img['alt'] }}">
    {% if img['caption'] %}<figcaption>{{ img['caption'] }}</figcaption>{% endif %}
</figure>
{% endfor %}
"""

TEMPL_BLOG_POST = wrap("""
<article>
    <h2 style="margin-bottom:.2rem">{{ p['title'] }}</h2>
    <div class="meta">{{ author }} · {{ p['published_at']|ts }}</div>
""" + TEMPL_IMAGES + """
    <div class="content">{{ p['content']|md }}</div>
""" + TEMPL_INDEXED_IMAGES + """
</article>
<p><a href="{{ url_for('blog_index') }}">← All posts</a></p>
""")

TEMPL_LOGIN = wrap("""
<h2>Admin login</h2>
<form method="post">
    {% if csrf_token() %}
        <input type="hidden" name="csrf" value="{{ csrf_token() }}">
    {% endif %}
    <label>Email <input type="email" name="email" value="{{ email }}" autofocus></label>
    <label>Password <input type="password" name="password"></label>
    <button>Log in</button>
</form>
""")

TEMPL_DASHBOARD = wrap("""
<h2>Dashboard</h2>
<p>Signed in as {{ account['email'] }}.</p>
<ul>
    <li>Users: {{ total_users }} ({{ admin_users }} admin)</li>
    <li>Your posts: {{ stats.total }}</li>
    <li>Published: {{ stats.published }}</li>
    <li>Drafts: {{ stats.drafts }}</li>
</ul>
<p><a href="{{ url_for('admin_new_post') }}">Write a post</a></p>
""")

TEMPL_ADMIN_POSTS = wrap("""
<h2>My posts</h2>
<p><a href="{{ url_for('admin_new_post') }}">New post</a></p>
<table style="width:100%">
{% for p in posts %}
    <tr>
        <td><a href="{{ url_for('admin_post', ref=p['slug']) }}">{{ p['title'] }}</a></td>
        <td><span class="pill">{{ 'published' if p['published'] else 'draft' }}</span></td>
        <td class="meta">{{ p['created_at']|ts }}</td>
    </tr>
{% else %}
    <tr><td>No posts yet.</td></tr>
{% endfor %}
</table>
""")

TEMPL_POST_FORM = wrap("""
<h2>{{ 'Edit post' if p.get('id') else 'New post' }}</h2>
<form method="post" action="{{ action }}">
    <input type="hidden" name="csrf" value="{{ csrf_token() }}">
    <label>Title <input type="text" name="title" value="{{ p.get('title') or '' }}" maxlength="200"></label>
    <label>Slug <input type="text" name="slug" value="{{ p.get('slug') or '' }}" placeholder="derived from the title"></label>
    <label>Excerpt <textarea name="excerpt" rows="2" maxlength="500">{{ p.get('excerpt') or '' }}</textarea></label>
    <label>Content <textarea name="content" rows="14">{{ p.get('content') or '' }}</textarea></label>
    <label>Images (JSON) <textarea name="images" rows="4">{{ p.get('images') or '[]' }}</textarea></label>
    <label><input type="checkbox" name="published" value="1" {% if p.get('published') %}checked{% endif %}> Published</label>
    <button>Save</button>
</form>
""")

TEMPL_ADMIN_POST = wrap("""
<p class="meta">
    <span class="pill">{{ 'published' if p['published'] else 'draft' }}</span>
    /{{ p['slug'] }} · created {{ p['created_at']|ts }}
    {% if p['published_at'] %}· first published {{ p['published_at']|ts }}{% endif %}
</p>
<h2>{{ p['title'] }}</h2>
""" + TEMPL_IMAGES + """
<div class="content">{{ p['content']|md }}</div>
""" + TEMPL_INDEXED_IMAGES + """
<p>
    <a href="{{ url_for('admin_edit_post', ref=p['slug']) }}">Edit</a>
    {% if p['published'] %}
        <a href="{{ url_for('blog_post', ref=p['slug']) }}">View on blog</a>
    {% endif %}
</p>
<form method="post" action="{{ url_for('admin_unpublish_post' if p['published'] else 'admin_publish_post', ref=p['slug']) }}">
    <input type="hidden" name="csrf" value="{{ csrf_token() }}">
    <button>{{ 'Unpublish' if p['published'] else 'Publish' }}</button>
</form>

<h3>Images ({{ post_images(p).count() }})</h3>
<ol start="0">
{% for img in post_images(p) %}
    <li>
        <code>{{ img['position'] or '–' }}</code> {{ img['src'] }}
        <form method="post" action="{{ url_for('admin_remove_image', ref=p['slug'], idx=loop.index0) }}" style="display:inline">
            <input type="hidden" name="csrf" value="{{ csrf_token() }}">
            <button>remove</button>
        </form>
    </li>
{% endfor %}
</ol>
<form method="post" action="{{ url_for('admin_add_image', ref=p['slug']) }}">
    <input type="hidden" name="csrf" value="{{ csrf_token() }}">
    <input type="text" name="src" placeholder="Image URL">
    <input type="text" name="alt" placeholder="Alt text">
    <input type="text" name="caption" placeholder="Caption">
    <input type="text" name="position" placeholder="hero or index-0, index-1, …">
    <button>Add image</button>
</form>
{% if post_images(p).count() %}
<form method="post" action="{{ url_for('admin_clear_images', ref=p['slug']) }}">
    <input type="hidden" name="csrf" value="{{ csrf_token() }}">
    <button>Remove all images</button>
</form>
{% endif %}

<form method="post" action="{{ url_for('admin_delete_post', ref=p['slug']) }}" style="margin-top:2rem">
    <input type="hidden" name="csrf" value="{{ csrf_token() }}">
    <button style="background:#c00;color:#fff">Delete post</button>
</form>
""")

TEMPL_404 = wrap("""
<h2>Page not found</h2>
<p>The URL you asked for doesn’t exist. <a href="{{ url_for('index') }}">Back to the front page</a>.</p>
""")

TEMPL_500 = wrap("""
<h2>Internal Server Error</h2>
<p>Our fault, not yours. Please try again in a minute.</p>
""")

app.jinja_env.globals["display_name"] = display_name


###############################################################################
# Public pages
###############################################################################
@app.route("/")
def index():
    posts = list_published(db=get_db(), limit=RECENT_ON_HOME)
    return render_template_string(TEMPL_INDEX, posts=posts)


@app.route("/blog")
def blog_index():
    q = request.args.get("q", "").strip()
    db = get_db()
    posts = search_posts(q, db=db) if q else list_published(db=db)
    return render_template_string(
        TEMPL_BLOG_INDEX,
        posts=posts,
        q=q,
        page_title="Blog Posts",
        page_description="Tutorial blog posts on modern web development.",
    )


@app.route("/blog/<ref>")
def blog_post(ref):
    try:
        post = published_post(ref, db=get_db())
    except PostNotFound:
        flash("Blog post not found or no longer available.")
        return redirect(url_for("blog_index"))
    return render_template_string(
        TEMPL_BLOG_POST,
        p=post,
        author=author_name(post),
        page_title=post["title"],
        page_description=truncate(excerpt_or_content(post), 160),
    )


###############################################################################
# Authentication
###############################################################################
@app.route("/admin/login", methods=["GET", "POST"])
@rate_limit(max_requests=5, window=60)
def admin_login():
    db = get_db()
    if request.method == "GET":
        if is_admin(current_principal(), db=db):
            flash("You are already logged in")
            return redirect(url_for("admin_dashboard"))
        return render_template_string(TEMPL_LOGIN, email="", page_title="Login")

    email = request.form.get("email", "").strip()
    password = request.form.get("password", "")
    if not email or not password:
        flash("Email and password are required")
        return (
            render_template_string(TEMPL_LOGIN, email=email, page_title="Login"),
            422,
        )

    principal = authenticate(email, password, db=db)
    if not principal.is_authenticated:
        app.logger.warning("Failed admin login from %s", client_ip())
        flash("Invalid email or password")
        return (
            render_template_string(TEMPL_LOGIN, email=email, page_title="Login"),
            401,
        )

    session.clear()
    session.permanent = True
    session["account_id"] = principal.account_id
    session["csrf"] = secrets.token_hex(16)
    app.logger.info("Account %d logged in", principal.account_id)
    flash(f"Welcome back, {normalize_email(email)}!")
    return redirect(url_for("admin_dashboard"))


@app.route("/admin/logout", methods=["POST"])
def admin_logout():
    account_id = session.get("account_id")
    session.clear()
    if account_id is not None:
        app.logger.info("Account %d logged out", account_id)
    flash("You have been logged out successfully")
    return redirect(url_for("index"))


###############################################################################
# Admin
###############################################################################
def _owned_or_404(principal: Principal, ref):
    try:
        return owned_post(principal, ref, db=get_db())
    except PostNotFound:
        abort(404)


def _post_form() -> dict:
    """The write request, exactly as the form sent it (no owner / id)."""
    data = {k: request.form.get(k, "") for k in ("title", "content", "excerpt", "slug")}
    data["published"] = request.form.get("published") == "1"
    if "images" in request.form:
        data["images"] = request.form["images"]
    return data


def _form_error(exc: ValidationError, *, p: dict, action: str):
    for msg in exc.messages():
        flash(msg)
    return render_template_string(TEMPL_POST_FORM, p=p, action=action), 422


@app.route("/admin")
def admin_dashboard():
    principal = admin_required()
    db = get_db()
    counts = db.execute(
        "SELECT COUNT(*) AS total, COALESCE(SUM(admin), 0) AS admins FROM account"
    ).fetchone()
    return render_template_string(
        TEMPL_DASHBOARD,
        account=find_account(principal.account_id, db=db),
        total_users=counts["total"],
        admin_users=counts["admins"],
        stats=owner_stats(principal, db=db),
        page_title="Admin Dashboard",
    )


@app.route("/admin/posts", methods=["GET", "POST"])
def admin_posts():
    principal = admin_required()
    db = get_db()

    if request.method == "POST":
        data = _post_form()
        try:
            post = create_post(principal, data, db=db)
        except ValidationError as exc:
            return _form_error(exc, p=data, action=url_for("admin_posts"))
        flash("Post was successfully created.")
        return redirect(url_for("admin_post", ref=post["slug"]))

    return render_template_string(
        TEMPL_ADMIN_POSTS, posts=list_owned(principal, db=db), page_title="My posts"
    )


@app.route("/admin/posts/new")
def admin_new_post():
    admin_required()
    return render_template_string(
        TEMPL_POST_FORM, p={}, action=url_for("admin_posts"), page_title="New post"
    )


@app.route("/admin/posts/<ref>")
def admin_post(ref):
    principal = admin_required()
    post = _owned_or_404(principal, ref)
    return render_template_string(TEMPL_ADMIN_POST, p=post, page_title=post["title"])


@app.route("/admin/posts/<ref>/edit", methods=["GET", "POST"])
def admin_edit_post(ref):
    principal = admin_required()
    post = _owned_or_404(principal, ref)
    action = url_for("admin_edit_post", ref=post["slug"])

    if request.method == "POST":
        data = _post_form()
        try:
            post = update_post(principal, ref, data, db=get_db())
        except ValidationError as exc:
            return _form_error(exc, p={**dict(post), **data}, action=action)
        flash("Post was successfully updated.")
        return redirect(url_for("admin_post", ref=post["slug"]))

    return render_template_string(
        TEMPL_POST_FORM, p=dict(post), action=action, page_title="Edit post"
    )


@app.route("/admin/posts/<ref>/delete", methods=["POST"])
def admin_delete_post(ref):
    principal = admin_required()
    try:
        delete_post(principal, ref, db=get_db())
    except PostNotFound:
        abort(404)
    flash("Post was successfully deleted.")
    return redirect(url_for("admin_posts"))


@app.route("/admin/posts/<ref>/publish", methods=["POST"])
def admin_publish_post(ref):
    principal = admin_required()
    try:
        post = publish_post(principal, ref, db=get_db())
    except PostNotFound:
        abort(404)
    app.logger.info("Post %d published", post["id"])
    flash("Post was successfully published.")
    return redirect(url_for("admin_post", ref=post["slug"]))


@app.route("/admin/posts/<ref>/unpublish", methods=["POST"])
def admin_unpublish_post(ref):
    principal = admin_required()
    try:
        post = unpublish_post(principal, ref, db=get_db())
    except PostNotFound:
        abort(404)
    app.logger.info("Post %d unpublished", post["id"])
    flash("Post was successfully unpublished.")
    return redirect(url_for("admin_post", ref=post["slug"]))


@app.route("/admin/posts/<ref>/images", methods=["POST"])
def admin_add_image(ref):
    principal = admin_required()
    image = make_descriptor(
        src=request.form.get("src", ""),
        alt=request.form.get("alt", ""),
        caption=request.form.get("caption", ""),
        position=request.form.get("position", ""),
    )
    try:
        post = owned_post(principal, ref, db=get_db())
        if image.get("src"):
            post = add_image(principal, ref, image, db=get_db())
            flash("Image added.")
        else:
            flash("Image source is required.")
    except PostNotFound:
        abort(404)
    return redirect(url_for("admin_post", ref=post["slug"]))


@app.route("/admin/posts/<ref>/images/<int:idx>/delete", methods=["POST"])
def admin_remove_image(ref, idx):
    principal = admin_required()
    try:
        post = remove_image(principal, ref, idx, db=get_db())
    except PostNotFound:
        abort(404)
    flash("Image removed.")
    return redirect(url_for("admin_post", ref=post["slug"]))


@app.route("/admin/posts/<ref>/images/clear", methods=["POST"])
def admin_clear_images(ref):
    principal = admin_required()
    try:
        post = clear_images(principal, ref, db=get_db())
    except PostNotFound:
        abort(404)
    flash("All images removed.")
    return redirect(url_for("admin_post", ref=post["slug"]))


###############################################################################
# Errors
###############################################################################
@app.errorhandler(404)
def not_found(exc):
    """Site-wide “Not Found” page."""
    return render_template_string(TEMPL_404, page_title="Not found"), 404


@app.errorhandler(500)
def internal_error(exc):
    """
    Generic 500 page.  With debug on, Flask bypasses this handler and the
    Werkzeug debugger shows the traceback instead.
    """
    app.logger.error("Internal error on %s: %s", request.path, exc)
    return render_template_string(TEMPL_500, page_title="Error"), 500


if __name__ == "__main__":
    app.run(debug=True)
