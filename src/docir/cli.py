"""docir CLI entrypoint."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from docir.config import IngestOptions
from docir.errors import ExternalConversionFailure, IngestError
from docir.mapper import map_ir_to_internal_model
from docir.parser.schema import ir_document_to_dict
from docir.pipeline import SUPPORTED_EXTENSIONS, file_extension, ingest_file
from docir.renderer.html_renderer import HTMLRenderer


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), required=True, help="Output JSON path")
@click.option("--model", is_flag=True, help="Write the mapped internal document instead of the IR")
@click.option("--no-cleanup", is_flag=True, help="Skip the cleanup pass")
@click.option("--preview", type=click.Path(path_type=Path), default=None, help="Also write an HTML preview")
@click.option("--merge-short-paragraphs", is_flag=True, help="Join consecutive short paragraphs")
@click.option("--split-sections", is_flag=True, help="Start a new section at every level-1 heading")
@click.option("--generate-anchors", is_flag=True, help="Give headings anchor slugs")
@click.option("--extract-assets", is_flag=True, help="List figure images as document assets")
@click.option("--preserve-formatting", is_flag=True, help="Keep inline Markdown syntax in block text")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline decisions to stderr")
def main(
    input_path: Path,
    output: Path,
    model: bool,
    no_cleanup: bool,
    preview: Path | None,
    merge_short_paragraphs: bool,
    split_sections: bool,
    generate_anchors: bool,
    extract_assets: bool,
    preserve_formatting: bool,
    verbose: bool,
) -> None:
    """Convert a txt/md/html/docx-html/json document into the document IR."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if file_extension(input_path.name) not in SUPPORTED_EXTENSIONS:
        raise click.ClickException(
            f"Unsupported input type: {input_path.name} (expected one of {', '.join('.' + e for e in SUPPORTED_EXTENSIONS)})"
        )

    options = IngestOptions(
        preserve_formatting=preserve_formatting,
        extract_assets=extract_assets,
        generate_anchors=generate_anchors,
        merge_short_paragraphs=merge_short_paragraphs,
        split_sections=split_sections,
        run_cleanup=not no_cleanup,
    )
    try:
        doc = ingest_file(input_path, options)
    except ExternalConversionFailure as exc:
        if exc.placeholder is None:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Warning: {exc}", err=True)
        doc = exc.placeholder
    except IngestError as exc:
        raise click.ClickException(str(exc)) from exc

    internal = map_ir_to_internal_model(doc)
    payload = internal.to_dict() if model else ir_document_to_dict(doc)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    cleanup = doc.metadata.custom.get("cleanup")
    summary = cleanup["summary"] if cleanup else None
    if preview is not None:
        preview.parent.mkdir(parents=True, exist_ok=True)
        preview.write_text(HTMLRenderer().render(internal, summary=summary), encoding="utf-8")
        click.echo(f"Preview: {preview}")

    if summary:
        click.echo(f"Cleanup: {summary}")
    click.echo(f"Wrote: {output}")


if __name__ == "__main__":  # pragma: no cover
    main()
