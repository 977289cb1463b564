"""HTML fragments for the server-rendered pages.

Every value that reaches the markup goes through :func:`html.escape`.
"""

from __future__ import annotations

from html import escape
from urllib.parse import urlencode

from murmur.core.constants import MAX_POST_LENGTH
from murmur.schemas.auth import CurrentUser
from murmur.schemas.common import FeedFilter
from murmur.schemas.post import PostsPage, PostView

_STYLE = """
body { font-family: system-ui, sans-serif; max-width: 40rem; margin: 2rem auto; padding: 0 1rem; }
.error { background: #fde8e8; color: #9b1c1c; padding: .5rem 1rem; border-radius: .25rem; }
.post { border: 1px solid #ddd; border-radius: .5rem; padding: .75rem 1rem; margin: .75rem 0; }
.meta { color: #666; font-size: .85rem; }
.toolbar a.active { font-weight: bold; }
form.inline { display: inline; }
.confirm { background: #fff4e5; padding: .25rem .5rem; border-radius: .25rem; }
textarea { width: 100%; }
"""

_ACTIVE = ' class="active"'


def feed_url(
    search: str = "",
    filter: FeedFilter = FeedFilter.ALL,
    cursor: str | None = None,
) -> str:
    """Return the page URL for a feed query, omitting defaults."""
    params: dict[str, str] = {}
    if search:
        params["search"] = search
    if filter is not FeedFilter.ALL:
        params["filter"] = filter.value
    if cursor:
        params["cursor"] = cursor
    return f"/?{urlencode(params)}" if params else "/"


def _document(title: str, body: str) -> str:
    return (
        "<!doctype html>\n"
        '<html lang="en"><head><meta charset="utf-8">'
        f"<title>{escape(title)}</title><style>{_STYLE}</style></head>"
        f"<body>{body}</body></html>"
    )


def _error(error: str | None) -> str:
    if not error:
        return ""
    return f'<p class="error" role="alert">{escape(error)}</p>'


def render_auth_page(app_name: str, error: str | None = None) -> str:
    """Login and signup forms for anonymous visitors."""
    body = f"""
<h1>{escape(app_name)}</h1>
{_error(error)}
<section>
  <h2>Log in</h2>
  <form method="post" action="/login">
    <label>Email <input type="email" name="email" required></label>
    <label>Password <input type="password" name="password" minlength="6" required></label>
    <button type="submit">Log in</button>
  </form>
</section>
<section>
  <h2>Sign up</h2>
  <form method="post" action="/signup">
    <label>Username <input name="username" minlength="3" maxlength="20"
      pattern="[a-zA-Z0-9_]+" required></label>
    <label>Email <input type="email" name="email" required></label>
    <label>Password <input type="password" name="password" minlength="6" maxlength="50" required></label>
    <button type="submit">Sign up</button>
  </form>
</section>
"""
    return _document(app_name, body)


def _toolbar(user: CurrentUser, search: str, active: FeedFilter) -> str:
    links = " ".join(
        f'<a href="{escape(feed_url(search, option))}"{_ACTIVE if option is active else ""}>'
        f"{option.value.title()}</a>"
        for option in FeedFilter
    )
    return f"""
<header class="toolbar">
  <span>@{escape(user.username)}</span>
  <form class="inline" method="post" action="/logout"><button type="submit">Log out</button></form>
  <form method="get" action="/">
    <input type="search" name="search" value="{escape(search)}" placeholder="Search posts">
    <input type="hidden" name="filter" value="{escape(active.value)}">
    <button type="submit">Search</button>
  </form>
  <nav>{links}</nav>
</header>
"""


def _composer(back: str) -> str:
    return f"""
<form method="post" action="/posts">
  <textarea name="content" rows="3" maxlength="{MAX_POST_LENGTH}" required
    placeholder="What's happening?"></textarea>
  <input type="hidden" name="next" value="{escape(back)}">
  <button type="submit">Post</button>
</form>
"""


def _post(
    post: PostView,
    user: CurrentUser,
    back: str,
    editing: bool = False,
    confirming_delete: bool = False,
) -> str:
    edited = " (edited)" if post.updated_at > post.created_at else ""
    hidden = f'<input type="hidden" name="next" value="{escape(back)}">'
    like_label = "Unlike" if post.is_liked else "Like"
    actions = (
        f'<form class="inline" method="post" action="/posts/{post.id}/like">{hidden}'
        f'<button type="submit">{like_label}</button></form> {post.like_count}'
    )
    if post.author_id == user.id:
        if editing:
            content = (
                f'<form method="post" action="/posts/{post.id}/edit">{hidden}'
                f'<textarea name="content" rows="3" maxlength="{MAX_POST_LENGTH}" required>'
                f"{escape(post.content)}</textarea>"
                '<button type="submit">Save</button></form>'
            )
        else:
            content = f"<p>{escape(post.content)}</p>"
        joiner = "&" if "?" in back else "?"
        actions += f' <a href="{escape(back)}{joiner}edit={post.id}">Edit</a>'
        if confirming_delete:
            actions += (
                ' <span class="confirm">Delete this post? This cannot be undone.'
                f' <form class="inline" method="post" action="/posts/{post.id}/delete">{hidden}'
                '<button type="submit">Delete</button></form>'
                f' <a href="{escape(back)}">Cancel</a></span>'
            )
        else:
            actions += f' <a href="{escape(back)}{joiner}delete={post.id}">Delete</a>'
    else:
        content = f"<p>{escape(post.content)}</p>"
    return f"""
<article class="post" id="post-{post.id}">
  <div class="meta">@{escape(post.author.username)} ·
    <time datetime="{post.created_at.isoformat()}">{post.created_at:%Y-%m-%d %H:%M}</time>{edited}</div>
  {content}
  <div>{actions}</div>
</article>
"""


def render_feed_page(
    app_name: str,
    user: CurrentUser,
    page: PostsPage,
    *,
    search: str = "",
    filter: FeedFilter = FeedFilter.ALL,
    cursor: str | None = None,
    edit_id: int | None = None,
    delete_id: int | None = None,
    error: str | None = None,
) -> str:
    """Toolbar, composer and one page of the feed for a signed-in viewer.

    ``edit_id`` opens the edit form of one post; ``delete_id`` asks for
    confirmation before that post's delete form is shown.
    """
    back = feed_url(search, filter, cursor)
    if page.posts:
        posts = "".join(
            _post(post, user, back, post.id == edit_id, post.id == delete_id)
            for post in page.posts
        )
    elif search:
        posts = "<p>No posts match your search.</p>"
    else:
        posts = "<p>No posts yet.</p>"
    more = ""
    if page.has_next_page and page.next_cursor:
        more = f'<p><a href="{escape(feed_url(search, filter, page.next_cursor))}">Load more</a></p>'
    body = (
        f"<h1>{escape(app_name)}</h1>"
        f"{_error(error)}"
        f"{_toolbar(user, search, filter)}"
        f"{_composer(back)}"
        f'<main aria-live="polite">{posts}</main>'
        f"{more}"
    )
    return _document(app_name, body)
