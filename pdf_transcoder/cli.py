"""
Command-line interface for PDF Transcoder.
"""

import asyncio
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeRemainingColumn
from rich.table import Table

from pdf_transcoder import __version__
from pdf_transcoder.config import IMAGE_FORMATS, ORIENTATIONS, PAGE_SIZES, SPLIT_MODES, TEXT_FORMATS, TranscodeOptions
from pdf_transcoder.exceptions import user_message
from pdf_transcoder.loader import DocumentLoader
from pdf_transcoder.tools import SourceFile, ToolContext, load_builtin_plugins, registry
from pdf_transcoder.utils import format_file_size, get_logger

console = Console()
LOGGER = get_logger("pdf_transcoder.cli")


def _fail(exc: BaseException) -> None:
    LOGGER.debug("Command failed: %r", exc)
    console.print(f"\n[bold red]✗ Error:[/bold red] {user_message(exc)}")
    sys.exit(1)


def _build_options(**values) -> TranscodeOptions:
    try:
        return TranscodeOptions.from_mapping(values)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


def _run(operation, inputs, options, output_dir):
    """Run ``operation`` with a progress bar, writing each artifact to ``output_dir``."""

    destination = Path(output_dir)
    written = []

    def save(artifact):
        destination.mkdir(parents=True, exist_ok=True)
        path = destination / artifact.filename
        path.write_bytes(artifact.data)
        written.append((path, artifact))

    try:
        sources = [SourceFile.from_path(item) for item in inputs]
        load_builtin_plugins()

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=console
        ) as progress:
            task = progress.add_task(f"Running {operation}", total=None)

            def update_progress(event):
                progress.update(task, completed=event.processed, total=event.total)

            context = ToolContext(
                sources=sources,
                options=options,
                on_progress=update_progress,
                on_status=lambda message: LOGGER.debug("%s", message),
                on_download=save,
            )
            result = asyncio.run(registry.create(operation, context).run())
    except Exception as exc:
        _fail(exc)
        return
    if result is None:
        return

    console.print(
        f"\n[bold green]✓ {operation} finished: {len(written)} file(s), "
        f"{result.pages_processed} page(s)[/bold green]"
    )
    console.print(f"[dim]Output directory: {os.path.abspath(destination)}[/dim]")
    for notice in result.notices:
        console.print(f"[yellow]! {notice.message}[/yellow]")

    table = Table(show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Pages", justify="right")
    table.add_column("Size", style="green", justify="right")
    sample_size = min(10, len(written))
    for path, artifact in written[:sample_size]:
        table.add_row(path.name, str(artifact.page_count), format_file_size(artifact.size))
    console.print(table)
    if len(written) > sample_size:
        console.print(f"  ... and {len(written) - sample_size} more")
    console.print()


def render_options(func):
    """Options shared by every command that rasterises pages."""

    func = click.option('--scale', type=float, default=None, help='Render scale against native page size (default 1.5)')(func)
    func = click.option('--quality', type=float, default=None, help='Image quality between 0.1 and 1.0')(func)
    func = click.option('--grayscale', is_flag=True, default=False, help='Convert pages to grayscale')(func)
    func = click.option('--max-pages', type=int, default=None, help='Maximum number of pages to process')(func)
    return func


def output_option(func):
    return click.option(
        '--output-dir', '-o',
        default='./output',
        help='Output directory',
        type=click.Path(file_okay=False)
    )(func)


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    PDF Transcoder - Merge, split, compress and convert PDF files.
    """
    pass


@cli.command(name="info")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
def show_info(input_pdf):
    """
    Display information about a PDF file.

    Example:

        pdf-transcoder info input.pdf
    """
    try:
        data = Path(input_pdf).read_bytes()
        info = asyncio.run(DocumentLoader().inspect(data))
    except Exception as exc:
        _fail(exc)
        return

    table = Table(title=f"PDF Information: {os.path.basename(input_pdf)}")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("File Path", os.path.abspath(input_pdf))
    table.add_row("File Size", format_file_size(info.file_size))
    table.add_row("Number of Pages", str(info.page_count))
    table.add_row("Engine", info.engine)
    table.add_row("Parse Profile", info.profile)
    if info.page_sizes:
        width, height = info.page_sizes[0]
        table.add_row("First Page", f"{width:.0f} x {height:.0f} pt")
        distinct = len(set((round(w), round(h)) for w, h in info.page_sizes))
        if distinct > 1:
            table.add_row("Page Sizes", f"{distinct} distinct")

    console.print()
    console.print(table)
    console.print()


@cli.command(name="merge")
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@output_option
@render_options
def merge(input_pdfs, output_dir, scale, quality, grayscale, max_pages):
    """
    Merge PDF files, in the order given, into one PDF.

    Example:

        pdf-transcoder merge a.pdf b.pdf -o out
    """
    options = _build_options(scale=scale, quality=quality, grayscale=grayscale, max_pages=max_pages)
    _run("merge", input_pdfs, options, output_dir)


@cli.command(name="split")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@output_option
@click.option('--pages', '-p', default='all', help='Page selection such as "all", "3" or "1-3,7"')
@click.option('--mode', '-m', type=click.Choice(SPLIT_MODES), default='range', help='One file for the selection, one per page, or fixed-size chunks')
@click.option('--chunk-size', type=int, default=None, help='Pages per file in chunks mode')
@click.option('--max-files', type=int, default=None, help='Maximum number of output files')
@render_options
def split(input_pdf, output_dir, pages, mode, chunk_size, max_files, scale, quality, grayscale, max_pages):
    """
    Split a PDF into one or more files.

    Examples:

        pdf-transcoder split input.pdf --pages 2,4

        pdf-transcoder split input.pdf --mode chunks --chunk-size 5
    """
    options = _build_options(
        pages=pages,
        split_mode=mode,
        chunk_size=chunk_size,
        max_output_files=max_files,
        scale=scale,
        quality=quality,
        grayscale=grayscale,
        max_pages=max_pages,
    )
    _run("split", [input_pdf], options, output_dir)


@cli.command(name="compress")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@output_option
@click.option('--scale', type=float, default=1.0, show_default=True, help='Render scale against native page size')
@click.option('--quality', type=float, default=0.6, show_default=True, help='JPEG quality between 0.1 and 1.0')
@click.option('--grayscale', is_flag=True, default=False, help='Convert pages to grayscale')
@click.option('--max-pages', type=int, default=None, help='Maximum number of pages to process')
def compress(input_pdf, output_dir, scale, quality, grayscale, max_pages):
    """
    Re-render a PDF at lower resolution and quality.

    Example:

        pdf-transcoder compress input.pdf --scale 0.8 --quality 0.5
    """
    options = _build_options(scale=scale, quality=quality, grayscale=grayscale, max_pages=max_pages)
    _run("compress", [input_pdf], options, output_dir)


@cli.command(name="to-images")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@output_option
@click.option('--pages', '-p', default='all', help='Page selection such as "all", "3" or "1-3,7"')
@click.option('--format', '-f', 'image_format', type=click.Choice(IMAGE_FORMATS + ("jpg",)), default='jpeg', help='Output image format')
@render_options
def to_images(input_pdf, output_dir, pages, image_format, scale, quality, grayscale, max_pages):
    """
    Render PDF pages to image files.

    Example:

        pdf-transcoder to-images input.pdf --pages 1-3 --format png --scale 2
    """
    options = _build_options(
        pages=pages,
        image_format=image_format,
        scale=scale,
        quality=quality,
        grayscale=grayscale,
        max_pages=max_pages,
    )
    _run("pdf-to-images", [input_pdf], options, output_dir)


@cli.command(name="to-text")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@output_option
@click.option('--pages', '-p', default='all', help='Page selection such as "all", "3" or "1-3,7"')
@click.option('--format', '-f', 'text_format', type=click.Choice(TEXT_FORMATS), default='txt', help='Plain text or Word document')
@click.option('--headings/--no-headings', default=True, help='Prefix each page with a "Page N" marker')
@click.option('--max-pages', type=int, default=None, help='Maximum number of pages to process')
def to_text(input_pdf, output_dir, pages, text_format, headings, max_pages):
    """
    Extract the text of PDF pages.

    Example:

        pdf-transcoder to-text input.pdf --format docx
    """
    options = _build_options(
        pages=pages, text_format=text_format, include_headings=headings, max_pages=max_pages
    )
    _run("pdf-to-text", [input_pdf], options, output_dir)


@cli.command(name="from-images")
@click.argument('images', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@output_option
@click.option('--page-size', type=click.Choice(PAGE_SIZES), default='fit', help='Preset page size, or fit to each image')
@click.option('--orientation', type=click.Choice(ORIENTATIONS), default='auto', help='Orientation of preset pages')
@click.option('--margin', 'margin_mm', type=float, default=0.0, help='Page margin in millimeters')
@click.option('--dpi', 'target_dpi', type=float, default=None, help='Image density used to size fitted pages')
@click.option('--quality', type=float, default=None, help='Image quality between 0.1 and 1.0')
@click.option('--grayscale', is_flag=True, default=False, help='Convert images to grayscale')
def from_images(images, output_dir, page_size, orientation, margin_mm, target_dpi, quality, grayscale):
    """
    Combine images into a PDF, one image per page.

    Example:

        pdf-transcoder from-images scan1.jpg scan2.png --page-size a4 --margin 10
    """
    options = _build_options(
        page_size=page_size,
        orientation=orientation,
        margin_mm=margin_mm,
        target_dpi=target_dpi,
        quality=quality,
        grayscale=grayscale,
        max_pages=len(images),
    )
    _run("images-to-pdf", images, options, output_dir)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()
