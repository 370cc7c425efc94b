"""
Behaviour tests for blog posts: authoring rules, slugs, tags, views and
reactions, plus the public read endpoints.
"""
import pytest

from blog_posts.service import BlogPostService
from core.database import DatabaseManager


def create_post(client, headers, **fields):
    payload = {
        "title": "Launching our new site",
        "slug": "launching-our-new-site",
        "content": "We rebuilt everything from scratch.",
        "thumbnail": "https://cdn.example.com/launch.png",
        "tags": ["news", "company"],
        "published": True,
    }
    payload.update(fields)
    response = client.post("/blog-posts", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def post(client, staff_headers):
    return create_post(client, staff_headers)


# =============================================================================
# AUTHORING
# =============================================================================

class TestAuthoring:

    def test_staff_create_posts_with_tags(self, client, staff, staff_headers):
        data = create_post(client, staff_headers, tags=["news", " news ", "company"])

        assert data["authorId"] == staff.id
        assert data["authorName"] == "Staff Member"
        assert sorted(t["name"] for t in data["tags"]) == ["company", "news"]
        assert data["views"] == 0 and data["reactions"] == 0

    def test_plain_users_cannot_create(self, client, user_headers):
        response = client.post("/blog-posts", headers=user_headers, json={
            "title": "Hi", "slug": "hi", "content": "x", "thumbnail": "t",
        })
        assert response.status_code == 403

    def test_slugs_are_unique(self, client, staff_headers, post):
        response = client.post("/blog-posts", headers=staff_headers, json={
            "title": "Other", "slug": post["slug"], "content": "x", "thumbnail": "t",
        })

        assert response.status_code == 400
        assert response.json()["detail"] == "A blog post with this slug already exists"

    def test_malformed_slug_fails_validation(self, client, staff_headers):
        response = client.post("/blog-posts", headers=staff_headers, json={
            "title": "Bad", "slug": "Not A Slug", "content": "x", "thumbnail": "t",
        })
        assert response.status_code == 422

    def test_only_author_or_editor_can_update(self, client, make_user, auth_headers, admin_headers, post):
        support_headers = auth_headers(make_user(roles=("support",)))

        denied = client.put(f"/blog-posts/{post['id']}", json={"title": "Hijacked"}, headers=support_headers)
        assert denied.status_code == 403

        allowed = client.put(f"/blog-posts/{post['id']}", json={"title": "Edited", "tags": ["launch"]},
                             headers=admin_headers)
        assert allowed.status_code == 200
        assert allowed.json()["data"]["title"] == "Edited"
        assert [t["name"] for t in allowed.json()["data"]["tags"]] == ["launch"]

    def test_delete_is_limited_to_author_or_admin(self, client, make_user, auth_headers, staff_headers, post):
        other_staff = auth_headers(make_user(roles=("staff",)))

        assert client.delete(f"/blog-posts/{post['id']}", headers=other_staff).status_code == 403
        assert client.delete(f"/blog-posts/{post['id']}", headers=staff_headers).status_code == 200
        assert client.get(f"/blog-posts/{post['id']}", headers=staff_headers).status_code == 404


# =============================================================================
# LISTING AND VIEWS
# =============================================================================

class TestListing:

    def test_filters_by_tag_and_publication(self, client, staff_headers, user_headers, post):
        create_post(client, staff_headers, slug="draft-notes", title="Draft notes", tags=["internal"],
                    published=False)

        by_tag = client.get("/blog-posts", params={"tags": "NEWS"}, headers=user_headers).json()
        assert [p["slug"] for p in by_tag["data"]] == [post["slug"]]

        published = client.get("/blog-posts/published", headers=user_headers).json()
        assert published["pagination"]["total"] == 1

        drafts = client.get("/blog-posts", params={"published": False}, headers=user_headers).json()
        assert [p["slug"] for p in drafts["data"]] == ["draft-notes"]

    def test_views_only_increment_when_requested(self, client, user_headers, post):
        client.get(f"/blog-posts/{post['id']}", headers=user_headers)
        viewed = client.get(f"/blog-posts/{post['id']}", params={"increment_views": True}, headers=user_headers)

        assert viewed.json()["data"]["views"] == 1

    def test_concurrent_readers_each_count_a_view(self, post):
        first, second = DatabaseManager.session_factory()(), DatabaseManager.session_factory()()
        try:
            BlogPostService.get_by_id(first, post["id"])
            BlogPostService.get_by_id(second, post["id"])

            BlogPostService.get_by_id(first, post["id"], increment_view=True)
            first.commit()
            viewed = BlogPostService.get_by_id(second, post["id"], increment_view=True)
            second.commit()
        finally:
            first.close()
            second.close()

        assert viewed["views"] == 2

    def test_stats_sum_views_and_reactions(self, client, staff_headers, user_headers, post):
        create_post(client, staff_headers, slug="second", published=False)
        client.post(f"/blog-posts/{post['id']}/reactions", headers=user_headers)
        client.get(f"/public/blog-posts/{post['id']}")

        stats = client.get("/blog-posts/stats", headers=user_headers).json()["data"]

        assert stats == {"total": 2, "published": 1, "draft": 1, "totalViews": 1, "totalReactions": 1}

    def test_user_listing_returns_that_authors_posts(self, client, staff, user_headers, post):
        response = client.get(f"/blog-posts/user/{staff.id}", headers=user_headers).json()
        assert response["pagination"]["total"] == 1


# =============================================================================
# REACTIONS
# =============================================================================

class TestReactions:

    def test_reactions_need_a_published_post(self, client, staff_headers, user_headers):
        draft = create_post(client, staff_headers, slug="draft", published=False)

        response = client.post(f"/blog-posts/{draft['id']}/reactions", headers=user_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot add reaction to unpublished post"

    def test_reactions_never_go_negative(self, client, user_headers, post):
        added = client.post(f"/blog-posts/{post['id']}/reactions", headers=user_headers)
        assert added.json()["data"] == {"reactions": 1}

        assert client.delete(f"/blog-posts/{post['id']}/reactions", headers=user_headers).status_code == 200
        underflow = client.delete(f"/blog-posts/{post['id']}/reactions", headers=user_headers)
        assert underflow.status_code == 400

    def test_reactions_from_overlapping_sessions_are_both_kept(self, user, post):
        """
        GIVEN two sessions that loaded the post before either reacted
        WHEN both add a reaction and commit in turn
        THEN neither reaction overwrites the other
        """
        first, second = DatabaseManager.session_factory()(), DatabaseManager.session_factory()()
        try:
            BlogPostService.get_by_id(first, post["id"])
            BlogPostService.get_by_id(second, post["id"])

            BlogPostService.add_reaction(first, post["id"], user.id)
            first.commit()
            result = BlogPostService.add_reaction(second, post["id"], user.id)
            second.commit()
        finally:
            first.close()
            second.close()

        assert result == {"reactions": 2}


# =============================================================================
# PUBLIC
# =============================================================================

class TestPublicEndpoints:

    def test_public_reads_hide_drafts(self, client, staff_headers, post):
        draft = create_post(client, staff_headers, slug="secret-draft", published=False)

        assert client.get(f"/public/blog-posts/{draft['id']}").status_code == 404
        assert client.get("/public/blog-posts/slug/secret-draft").status_code == 404
        listing = client.get("/public/blog-posts", params={"published": False}).json()
        assert [p["slug"] for p in listing["data"]] == [post["slug"]]

    def test_public_slug_read_counts_a_view(self, client, post):
        response = client.get(f"/public/blog-posts/slug/{post['slug']}")

        assert response.status_code == 200
        assert response.json()["data"]["views"] == 1
