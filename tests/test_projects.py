"""
Behaviour tests for portfolio projects: staff CRUD, JSON list filters,
related projects and the public read endpoints.
"""
import pytest

from projects.service import optional_list


def create_project(api, headers, **fields):
    payload = {
        "slug": "acme-storefront",
        "title": "Acme storefront",
        "client": "Acme Corp",
        "services": ["Web Development", "Design"],
        "technologies": ["Python", "React", "PostgreSQL"],
        "about": "A headless storefront",
        "tags": ["ecommerce"],
        "published": True,
    }
    payload.update(fields)
    response = api.post("/projects", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def project(client, staff_headers):
    return create_project(client, staff_headers)


# =============================================================================
# CRUD
# =============================================================================

class TestProjectCrud:

    def test_create_returns_camel_case_fields(self, client, staff_headers):
        data = create_project(client, staff_headers, goal_images=[" https://cdn.example.com/g.png "])

        assert data["goalImages"] == ["https://cdn.example.com/g.png"]
        assert data["resultImages"] == []
        assert [t["name"] for t in data["tags"]] == ["ecommerce"]

    def test_staff_only(self, client, user_headers):
        response = client.post("/projects", headers=user_headers, json={"slug": "x", "title": "X"})
        assert response.status_code == 403
        assert client.get("/projects", headers=user_headers).status_code == 403

    def test_duplicate_slug_is_rejected(self, client, staff_headers, project):
        response = client.post("/projects", headers=staff_headers, json={"slug": project["slug"], "title": "Copy"})

        assert response.status_code == 400
        assert response.json()["detail"] == "A project with this slug already exists"

    def test_too_many_services_fail_validation(self, client, staff_headers):
        response = client.post("/projects", headers=staff_headers, json={
            "slug": "big", "title": "Big", "services": [f"s{i}" for i in range(21)],
        })
        assert response.status_code == 422

    def test_partial_update_keeps_other_fields(self, client, staff_headers, project):
        response = client.put(f"/projects/{project['id']}", headers=staff_headers,
                              json={"subtitle": "Now with search", "tags": []})

        data = response.json()["data"]
        assert data["subtitle"] == "Now with search"
        assert data["title"] == project["title"]
        assert data["technologies"] == project["technologies"]
        assert data["tags"] == []

    def test_only_admins_delete(self, client, staff_headers, admin_headers, project):
        denied = client.delete(f"/projects/{project['id']}", headers=staff_headers)
        assert denied.status_code == 403
        assert denied.json()["detail"] == "Only administrators can delete projects"

        assert client.delete(f"/projects/{project['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/projects/{project['id']}", headers=admin_headers).status_code == 404


# =============================================================================
# LISTING
# =============================================================================

class TestProjectListing:

    @pytest.fixture
    def catalogue(self, client, staff_headers, project):
        create_project(client, staff_headers, slug="globex-app", title="Globex mobile app", client="Globex",
                       services=["Mobile"], technologies=["Kotlin", "Swift"], tags=["mobile"])
        create_project(client, staff_headers, slug="initech-portal", title="Initech portal", client="Initech",
                       services=["Web Development"], technologies=["Django"], tags=[], published=False)

    def test_services_filter_is_case_insensitive(self, client, staff_headers, catalogue):
        response = client.get("/projects", params={"services": "web development"}, headers=staff_headers)

        slugs = sorted(p["slug"] for p in response.json()["data"])
        assert slugs == ["acme-storefront", "initech-portal"]

    def test_comma_separated_technologies(self, client, staff_headers, catalogue):
        response = client.get("/projects", params={"technologies": "swift,django"}, headers=staff_headers)
        assert response.json()["pagination"]["total"] == 2

    def test_search_covers_json_lists(self, client, staff_headers, catalogue):
        response = client.get("/projects", params={"search": "kotlin"}, headers=staff_headers)
        assert [p["slug"] for p in response.json()["data"]] == ["globex-app"]

    def test_pagination_applies_after_list_filters(self, client, staff_headers, catalogue):
        response = client.get("/projects", params={"services": "Web Development", "limit": 1, "page": 2,
                                                   "sort_by": "title", "sort_order": "asc"},
                              headers=staff_headers).json()

        assert response["pagination"] == {"page": 2, "limit": 1, "total": 2, "totalPages": 2}
        assert [p["slug"] for p in response["data"]] == ["initech-portal"]

    def test_stats_collect_distinct_values(self, client, staff_headers, catalogue):
        stats = client.get("/projects/stats", headers=staff_headers).json()["data"]

        assert stats["total"] == 3
        assert stats["clients"] == 3
        assert stats["services"] == ["Design", "Mobile", "Web Development"]
        assert stats["totalTechnologies"] == 6

    def test_related_projects_share_tags_or_stack(self, client, staff_headers, project, catalogue):
        related = client.get(f"/projects/{project['id']}/related", headers=staff_headers).json()["data"]
        assert [p["slug"] for p in related] == ["initech-portal"]

        public = client.get(f"/public/projects/{project['id']}/related").json()["data"]
        assert public == []


# =============================================================================
# PUBLIC
# =============================================================================

class TestPublicProjects:

    def test_drafts_are_hidden(self, client, staff_headers, project):
        draft = create_project(client, staff_headers, slug="secret", published=False)

        assert client.get(f"/public/projects/{draft['id']}").status_code == 404
        assert client.get("/public/projects/slug/secret").status_code == 404
        assert client.get(f"/public/projects/slug/{project['slug']}").status_code == 200
        assert client.get("/public/projects").json()["pagination"]["total"] == 1


class TestOptionalList:

    def test_flattens_repeated_and_comma_values(self):
        assert optional_list(["a, b", "c", " "]) == ["a", "b", "c"]

    def test_empty_input_means_no_filter(self):
        assert optional_list(None) is None
        assert optional_list([" , "]) is None
