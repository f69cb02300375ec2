"""Tests for SkyView state and the star map renderer."""

from datetime import datetime, timedelta, timezone

import pytest

from vizchat.errors import RendererError
from vizchat.render.constellation import (
    MAX_ZOOM,
    MIN_ZOOM,
    ConstellationData,
    ConstellationLines,
    ConstellationRenderer,
    SkyView,
    project_stars,
)

MOMENT = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

URSA_MINOR = {
    "stars": [
        {"id": 1, "ra": 2.53, "dec": 89.26, "mag": 1.98, "name": "Polaris", "constellation": "UMi"},
        {"id": 2, "ra": 14.85, "dec": 74.16, "mag": 2.08, "name": "Kochab", "constellation": "UMi"},
    ],
    "constellations": [
        {"id": "UMi", "name": {"en": "Ursa Minor", "ko": "작은곰자리"}, "lines": [[1, 2]]},
    ],
}

OCTANS = {
    "stars": [
        {"id": "nu", "ra": 21.69, "dec": -77.39, "mag": 3.76},
        {"id": "beta", "ra": 22.77, "dec": -81.38, "mag": 4.13},
    ],
    "constellations": [{"id": "Oct", "name": "Octans", "lines": [["nu", "beta"]]}],
}


def view():
    return SkyView(observer_time=MOMENT)


class TestSkyView:

    def test_zoom_steps(self):
        sky = view()

        assert sky.zoom_in() == 1.2
        assert sky.zoom_out() == 1.0
        assert sky.zoom_out() == 0.8

    def test_zoom_is_clamped(self):
        sky = view()

        for _ in range(20):
            sky.zoom_in()
        assert sky.zoom == MAX_ZOOM

        for _ in range(20):
            sky.zoom_out()
        assert sky.zoom == MIN_ZOOM

    def test_advance_moves_observer_time(self):
        sky = view()

        assert sky.advance(2.5) == MOMENT + timedelta(hours=2.5)
        assert sky.advance(-2.5) == MOMENT

    def test_reset_keeps_observer_time(self):
        sky = view()
        sky.zoom_in()
        sky.pan(10, -5)
        sky.advance(3)

        sky.reset()

        assert (sky.zoom, sky.pan_x, sky.pan_y) == (1.0, 0.0, 0.0)
        assert sky.observer_time == MOMENT + timedelta(hours=3)

    def test_label_limit_grows_with_zoom(self):
        sky = view()
        before = sky.label_magnitude_limit()

        sky.zoom_in()

        assert sky.label_magnitude_limit() > before


class TestProjectStars:

    def test_live_sky_when_any_star_is_up(self):
        projected, live_sky = project_stars(ConstellationData.model_validate(URSA_MINOR), view())

        assert live_sky
        assert [p.visible for p in projected] == [True, True]

    def test_chart_fallback_when_all_below_horizon(self):
        projected, live_sky = project_stars(ConstellationData.model_validate(OCTANS), view())

        assert not live_sky
        assert all(p.visible for p in projected)

    def test_chart_fallback_centres_on_payload_centre(self):
        data = ConstellationData.model_validate(dict(OCTANS, center={"ra": 21.69, "dec": -77.39}))

        projected, _ = project_stars(data, view())

        assert (projected[0].x, projected[0].y) == pytest.approx((400, 250))

    def test_pan_offsets_positions(self):
        data = ConstellationData.model_validate(URSA_MINOR)
        panned = view()
        panned.pan(30, -20)

        (base, _), _ = project_stars(data, view())
        (moved, _), _ = project_stars(data, panned)

        assert moved.x == pytest.approx(base.x + 30)
        assert moved.y == pytest.approx(base.y - 20)

    def test_no_stars(self):
        assert project_stars(ConstellationData(), view()) == ([], True)


class TestConstellationRenderer:

    def test_title_and_status(self, context, render_text):
        output = render_text(ConstellationRenderer(context, view=view()).render(URSA_MINOR))

        assert "Ursa Minor" in output
        assert "2024-01-15 12:00 UTC" in output
        assert "★ 2/2" in output
        assert "zoom ×1.0" in output

    def test_localized_name(self, ko_context, render_text):
        output = render_text(ConstellationRenderer(ko_context, view=view()).render(URSA_MINOR))

        assert "작은곰자리" in output

    def test_bright_star_labelled_when_zoomed(self, context, render_text):
        sky = view()
        sky.zoom_in()
        sky.zoom_in()

        output = render_text(ConstellationRenderer(context, view=sky).render(URSA_MINOR))

        assert "Polaris" in output

    def test_below_horizon_notice(self, context, render_text):
        output = render_text(ConstellationRenderer(context, view=view()).render(OCTANS))

        assert "Octans" in output
        assert "below the horizon (chart view)" in output

    def test_default_title_without_constellations(self, context, render_text):
        payload = {"stars": URSA_MINOR["stars"]}

        output = render_text(ConstellationRenderer(context, view=view()).render(payload))

        assert "Constellation Map" in output

    def test_invalid_payload(self, context):
        with pytest.raises(RendererError, match="Invalid star map"):
            ConstellationRenderer(context, view=view()).render({"stars": [{"id": 1, "ra": "east"}]})

    def test_display_name_fallbacks(self):
        assert ConstellationLines(id="Ori", name={"ko": "오리온"}).display_name("en") == "Ori"
        assert ConstellationLines(id="Ori", name="Orion").display_name("ko") == "Orion"
