"""Shared fixtures for core unit tests"""

import pytest

from flowbridge.core.models import Section


SAMPLE_CSS = """\
:root {
  --light-bg: #ffffff;
  --dark-bg: #111111;
  --text-dark: #1a1a1a;
  --text-light: #f5f5f5;
  --font-heading: 'Inter', sans-serif;
  --radius-md: 8px;
}
* { box-sizing: border-box; }
body { margin: 0; }
.hero-section { padding: 4rem; }
.hero-title { font-size: 3rem; }
.btn { color: #fff; }
.btn.btn-primary { background-color: #ff5500; }
.btn:hover { opacity: 0.8; }
.features-section { display: grid; gap: 2rem; }
.pricing { color: #333; }
.nav { display: flex; }
.footer { padding: 2rem; }
h1, h2, h3 { line-height: 1.2; }
@media (max-width: 767px) {
  .hero-title { font-size: 2rem; }
}
@keyframes fade { from { opacity: 0; } to { opacity: 1; } }
.fade-in { animation: fade 1s ease; }
"""

SAMPLE_PAGE = f"""\
<!doctype html>
<html>
<head>
<title>Flow Party - Landing</title>
<style>
{SAMPLE_CSS}
</style>
<script src="https://cdn.example.com/lib.js"></script>
<script>console.log("ready");</script>
</head>
<body>
<nav class="nav"><a href="/">Home</a></nav>
<section class="hero-section">
  <h1 class="hero-title">Hello</h1>
  <a class="btn btn-primary" href="/start">Start</a>
</section>
<section class="features-section">
  <div class="feature fade-in"><p>Fast</p></div>
</section>
<section class="pricing">
  <p>Plans</p>
</section>
<footer class="footer"><p>Bye</p></footer>
</body>
</html>
"""


@pytest.fixture(name="sample_css")
def sample_css_fixture():
    return SAMPLE_CSS


@pytest.fixture(name="sample_page")
def sample_page_fixture():
    return SAMPLE_PAGE


@pytest.fixture(name="hero_section")
def hero_section_fixture():
    return Section(
        id="hero-section",
        name="Hero",
        tag_name="section",
        class_name="hero-section",
        html=(
            '<section class="hero-section" id="top">'
            '<h1 class="hero-title">Hello<br>world</h1>'
            '<a class="btn btn-primary" href="/start" target="_blank" data-track="cta">Start</a>'
            '<img class="hero-img" src="/hero.png" alt="Hero" loading="lazy">'
            '<script>alert(1)</script>'
            '</section>'
        ),
        class_names=["hero-section", "hero-title", "btn", "btn-primary", "hero-img"],
        css=(
            ".hero-section { padding: 4rem; -webkit-font-smoothing: antialiased; }\n"
            ".hero-title { font-size: 3rem; }\n"
            ".btn { color: #fff; }\n"
            ".btn.btn-primary { background-color: #ff5500; }\n"
            ".btn:hover { opacity: 0.8; }\n"
            ".hero-title::before { content: ''; }\n"
            "@media (max-width: 767px) { .hero-title { font-size: 2rem; } }\n"
        ),
    )
