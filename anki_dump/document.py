"""
Write rendered cards as a single HTML page.
"""

import logging
from pathlib import Path

from jinja2 import Environment, select_autoescape

from anki_dump.package import AnkiPackage, RenderedPackage

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.html"

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>Anki Package Dump: {{ title }}</title>
    <style type="text/css">
    .filepath { font-family: monospace }
    .generated { font-family: monospace }
    .type { padding: 5px; text-align: center; }
    .flashcards {
      width: 70%;
      min-width: 500px;
      display: flex; flex-flow: column nowrap; justify-content: flex-start; align-content: center;
    }
    .flashcard {
      flex: 1 1 auto;
      display: flex; flex-flow: row nowrap; justify-content: space-around; align-items: stretch; align-content: center;
    }
    .flashcard > * { padding: 10px; margin: 10px; min-height: 200px; }
    .flashcard .delim { line-height: 200px; }
    .flashcard .frontside { width: 40%; box-shadow: #FAA 0px 0px 10px; }
    .flashcard .backside { width: 40%; box-shadow: #AAF 0px 0px 10px; }
    </style>
  </head>

  <body>
    <header>
      <h1>{{ title }}</h1>
      <p>Generated from <span class="filepath">{{ filepath }}</span> on <span class="generated">{{ now }}</span></p>
      <div class="description">
        {{ description }}
      </div>
    </header>
    <article>
      <div class="flashcards">
{% for card in cards %}
        <div class="flashcard">
          <style type="text/css">
            {{ card.stylesheet | safe }}
          </style>
          <div class="frontside card">
            {{ card.front | safe }}
          </div>
          <div class="delim">&rArr;</div>
          <div class="backside card">
            {{ card.back | safe }}
          </div>
          <div style="clear:both"></div>
        </div>
{% endfor %}
      </div>
    </article>
  </body>
</html>
"""

_env = Environment(autoescape=select_autoescape(default_for_string=True))


def render_document(rendered: RenderedPackage) -> str:
    """Render the HTML page. Card HTML is inserted as is, header text is escaped."""
    template = _env.from_string(HTML_TEMPLATE)
    return template.render(
        title=rendered.title,
        description=rendered.description,
        filepath=rendered.filepath,
        now=rendered.now,
        cards=rendered.cards,
    )


def write_document(rendered: RenderedPackage, output_dir: str | Path) -> Path:
    """
    Write ``index.html`` into ``output_dir``.

    :param rendered: Output of :meth:`AnkiPackage.render`.
    :param output_dir: Destination directory (created if needed).
    :returns: Path of the written file.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / INDEX_FILENAME
    path.write_text(render_document(rendered), encoding="utf-8")
    logger.info("Wrote %d cards to %s", len(rendered.cards), path)
    return path


def convert(
    apkg_path: str | Path,
    output_dir: str | Path = "out",
    title: str | None = None,
    description: str | None = None,
) -> Path:
    """
    Convert an .apkg file into an HTML page with its media files.

    :param apkg_path: Path to the .apkg file.
    :param output_dir: Directory for ``index.html`` and the media files.
    :param title: Title override. Required if cards span several decks.
    :param description: Description shown below the title.
    :returns: Path of the written ``index.html``.
    """
    with AnkiPackage(apkg_path, output_dir) as pkg:
        rendered = pkg.render(title=title, description=description)
    return write_document(rendered, output_dir)
