"""EBIOS RM editor - Command Line Interface."""

import atexit
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import click
import yaml
from pydantic import ValidationError

from . import __version__, projector
from .config import ConfigError, Settings, configure_logging, load_settings
from .diagrams import MissionSupportDiagram, SrovDiagram
from .exporter import ALL_EXPORT_FILENAME, ExportError, export_all, export_analysis, export_filename, write_document
from .parser import AnalysisParseError, load_gap_file, load_store_file
from .persistence import FileBackend, PersistenceError, PersistenceGateway
from .report_generator import ReportGenerator
from .resolver import (
    IMPORT_KINDS, IMPORT_TITLES, SelectionCandidate, available_for_selection, filter_candidates,
    import_candidates, unique_supports_across_missions,
)
from .schemas import (
    ACTION_COLLECTIONS, COLLECTIONS, KILL_CHAIN_STAGES, Action, ActionRow, EbiosModel, Support,
)
from .store import IMPORT_COLLECTIONS, EntityNotFoundError, EntityStore, NoAnalysisSelectedError
from .techniques import TechniqueCatalogue


STORE_ERRORS = (EntityNotFoundError, NoAnalysisSelectedError, PersistenceError)
EDIT_ERRORS = STORE_ERRORS + (KeyError, ValidationError)

EDITABLE_COLLECTIONS = tuple(COLLECTIONS) + tuple(ACTION_COLLECTIONS)
ITEM_LABELS = {
    'missions': ('denom',),
    'events': ('evenement',),
    'gap': ('domaine', 'titre'),
    'srov': ('source', 'objectif'),
    'ppc': ('nom',),
    'strategies': ('source', 'objectif'),
    'so': ('path',),
    'risques': ('titre',),
}


@dataclass
class AppContext:
    settings: Settings
    store: EntityStore
    catalogue: TechniqueCatalogue


class ClickSelectionDialog:
    """Numbered candidate list answered on the terminal."""

    def __init__(self, search: Optional[str] = None):
        self.search = search

    def choose(self, title: str, candidates: Sequence[SelectionCandidate]) -> list[str]:
        candidates = filter_candidates(candidates, self.search or '')
        if not candidates:
            click.echo(click.style('Aucun élément disponible.', fg='yellow'))
            return []
        click.echo(click.style(title, bold=True))
        for index, candidate in enumerate(candidates, start=1):
            details = ' - '.join(part for part in (candidate.description, candidate.extra) if part)
            click.echo(f'  {index}. {candidate.label}' + (f'  ({details})' if details else ''))
        answer = click.prompt('Numéros (séparés par des virgules, "all" pour tout)', default='', show_default=False)
        if answer.strip().lower() == 'all':
            return [c.id for c in candidates]
        chosen = []
        for part in answer.split(','):
            part = part.strip()
            if part.isdigit() and 1 <= int(part) <= len(candidates):
                chosen.append(candidates[int(part) - 1].id)
        return chosen


def _fail(message: str) -> None:
    click.echo(click.style(message, fg='red'), err=True)
    sys.exit(1)


def _app(ctx: click.Context) -> AppContext:
    return ctx.obj


def _target(app: AppContext, analysis_id: Optional[str]):
    if analysis_id:
        return app.store.get_analysis(analysis_id)
    return app.store.require_current()


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c', 'config_path', type=click.Path(dir_okay=False), help='Settings file (YAML)')
@click.option('--data-dir', type=click.Path(file_okay=False), help='Directory holding the stored analyses')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx: click.Context, config_path: str, data_dir: str, verbose: bool):
    """EBIOS RM editor - risk analysis workshops from the command line."""
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        _fail(f'Invalid configuration: {e}')
    if data_dir:
        settings = settings.model_copy(update={'data_dir': Path(data_dir)})
    configure_logging('DEBUG' if verbose else settings.log_level)

    gateway = PersistenceGateway(FileBackend(settings.data_dir))
    store = EntityStore(gateway)
    atexit.register(store.persist_selection)
    catalogue = TechniqueCatalogue(gateway, settings.technique_source, settings.fetch_timeout)
    ctx.obj = AppContext(settings=settings, store=store, catalogue=catalogue)


@cli.command()
@click.argument('title', required=False)
@click.pass_context
def new(ctx: click.Context, title: Optional[str]):
    """Create an analysis and select it."""
    try:
        analysis = _app(ctx).store.create_analysis(title)
    except PersistenceError as e:
        _fail(f'Failed to save analysis: {e}')
    click.echo(click.style('Analysis created!', fg='green'))
    click.echo(f'  ID: {analysis.id}')
    click.echo(f'  Title: {analysis.title}')


@cli.command(name='list')
@click.pass_context
def list_analyses(ctx: click.Context):
    """List analyses; the current one is starred."""
    store = _app(ctx).store
    if not store.analyses:
        click.echo(click.style('Aucune analyse créée.', fg='yellow'))
        return
    for analysis in store.analyses:
        marker = '*' if analysis.id == store.selected_id else ' '
        click.echo(f'{marker} {analysis.id}  {analysis.title or "(sans titre)"}')


@cli.command()
@click.argument('analysis_id')
@click.pass_context
def select(ctx: click.Context, analysis_id: str):
    """Make an analysis the current one."""
    try:
        analysis = _app(ctx).store.select_analysis(analysis_id)
    except EntityNotFoundError as e:
        _fail(str(e))
    click.echo(click.style(f'Selected: {analysis.title}', fg='green'))


@cli.command()
@click.argument('analysis_id')
@click.argument('title')
@click.pass_context
def rename(ctx: click.Context, analysis_id: str, title: str):
    """Change the title of an analysis."""
    try:
        _app(ctx).store.rename_analysis(analysis_id, title)
    except STORE_ERRORS as e:
        _fail(f'Failed to rename analysis: {e}')
    click.echo(click.style(f'Renamed: {title}', fg='green'))


@cli.command()
@click.argument('analysis_id')
@click.confirmation_option(prompt='Supprimer cette analyse ?')
@click.pass_context
def delete(ctx: click.Context, analysis_id: str):
    """Delete an analysis."""
    try:
        _app(ctx).store.delete_analysis(analysis_id)
    except STORE_ERRORS as e:
        _fail(f'Failed to delete analysis: {e}')
    click.echo(click.style('Analysis deleted.', fg='green'))


@cli.command()
@click.option('--id', 'analysis_id', help='Analysis id (defaults to the current one)')
@click.pass_context
def show(ctx: click.Context, analysis_id: Optional[str]):
    """Summarize an analysis."""
    try:
        analysis = _target(_app(ctx), analysis_id)
    except STORE_ERRORS as e:
        _fail(str(e))
    summary = projector.analysis_summary(analysis)
    click.echo(click.style(analysis.title or '(sans titre)', bold=True))
    click.echo(f'  ID: {analysis.id}')
    for name, count in summary.counts:
        click.echo(f'  {name}: {count}')

    donut = projector.compliance_donut(analysis.data.gap)
    if donut.has_data:
        click.echo('\nGAP:')
        for s in donut.slices:
            click.echo(f'  {s.status}: {s.count} ({s.percent}%)')

    for row in projector.mission_table(analysis.data):
        click.echo(f'\n{row.denom or "Valeur métier"} [{row.nature}] impact {row.impact}')
        for name in row.supports:
            click.echo(f'  - {name}')


@cli.command()
@click.option('--id', 'analysis_id', help='Analysis id (defaults to the current one)')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Output JSON file')
@click.pass_context
def export(ctx: click.Context, analysis_id: Optional[str], output: Optional[str]):
    """Export one analysis as JSON."""
    try:
        analysis = _target(_app(ctx), analysis_id)
        path = write_document(output or export_filename(analysis.title), export_analysis(analysis))
    except STORE_ERRORS + (ExportError,) as e:
        _fail(f'Failed to export analysis: {e}')
    click.echo(click.style(f'Exported: {path}', fg='green'))


@cli.command(name='export-all')
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=ALL_EXPORT_FILENAME, show_default=True)
@click.pass_context
def export_all_command(ctx: click.Context, output: str):
    """Export every analysis as one JSON list."""
    try:
        path = write_document(output, export_all(list(_app(ctx).store.analyses)))
    except ExportError as e:
        _fail(f'Failed to export analyses: {e}')
    click.echo(click.style(f'Exported: {path}', fg='green'))


@cli.command(name='import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_command(ctx: click.Context, path: str):
    """Import an export file; a list replaces every stored analysis."""
    store = _app(ctx).store
    try:
        result = load_store_file(path)
        if result.replace and store.analyses:
            click.confirm(f'Remplacer les {len(store.analyses)} analyses existantes ?', abort=True)
        analysis = store.apply_import(result)
    except AnalysisParseError as e:
        _fail(f'Import failed: {e}')
    except STORE_ERRORS as e:
        _fail(f'Import failed: {e}')
    click.echo(click.style(f'Imported {len(result.analyses)} analysis(es).', fg='green'))
    if analysis is not None:
        click.echo(f'  Selected: {analysis.title}')


@cli.command(name='import-gap')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_gap(ctx: click.Context, path: str):
    """Append GAP requirements from a JSON or YAML list."""
    try:
        requirements = load_gap_file(path)
        _app(ctx).store.import_gap_requirements(requirements)
    except AnalysisParseError as e:
        _fail(f'Import failed: {e}')
    except STORE_ERRORS as e:
        _fail(f'Import failed: {e}')
    click.echo(click.style(f'Imported {len(requirements)} requirement(s).', fg='green'))


@cli.command(name='import-actions')
@click.argument('kind', type=click.Choice(IMPORT_KINDS))
@click.option('--search', '-s', help='Only offer candidates matching this text')
@click.option('--all', 'select_all', is_flag=True, help='Import every candidate without asking')
@click.pass_context
def import_actions(ctx: click.Context, kind: str, search: Optional[str], select_all: bool):
    """Create action rows from requirements, supports, parties or risks."""
    app = _app(ctx)
    try:
        analysis = app.store.require_current()
        candidates = import_candidates(analysis.data, kind, app.catalogue.techniques)
        if select_all:
            keys = [c.id for c in filter_candidates(candidates, search or '')]
        else:
            keys = ClickSelectionDialog(search).choose(IMPORT_TITLES[kind], candidates)
        created = app.store.import_action_rows(kind, keys)
    except STORE_ERRORS as e:
        _fail(f'Import failed: {e}')
    click.echo(click.style(f'{len(created)} row(s) added.', fg='green'))


def _field_model(collection: str) -> type[EbiosModel]:
    if collection == 'supports':
        return Support
    return COLLECTIONS.get(collection) or ACTION_COLLECTIONS[collection]


def _parse_assignments(model: type[EbiosModel], pairs: Sequence[str]) -> dict:
    """Turn ``key=value`` pairs into field values.

    Text fields keep the raw string; other values are read as YAML scalars or
    lists, so ``retenue=false`` and ``supportIds=[a, b]`` work.
    """
    values = {}
    for pair in pairs:
        key, sep, raw = pair.partition('=')
        key = key.strip()
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got '{pair}'", param_hint="'--set'")
        if key in model.TEXT_FIELDS:
            values[key] = raw
            continue
        try:
            values[key] = yaml.safe_load(raw) if raw else ''
        except yaml.YAMLError:
            values[key] = raw
    return values


def _entity_key(entity: EbiosModel) -> str:
    if isinstance(entity, ActionRow):
        return entity.ref
    if isinstance(entity, Support):
        return entity.name
    return entity.id


def _item_label(collection: str, entity: EbiosModel) -> str:
    if isinstance(entity, ActionRow):
        return f'{len(entity.actions)} action(s)'
    fields = ITEM_LABELS.get(collection, ())
    return ' / '.join(getattr(entity, f) for f in fields if getattr(entity, f)) or '(sans nom)'


@cli.command()
@click.argument('collection', type=click.Choice(EDITABLE_COLLECTIONS))
@click.pass_context
def items(ctx: click.Context, collection: str):
    """List the entries of a collection of the current analysis."""
    try:
        data = _app(ctx).store.require_current().data
    except NoAnalysisSelectedError as e:
        _fail(str(e))
    entries = getattr(data, collection)
    if not entries:
        click.echo(click.style('Aucun élément.', fg='yellow'))
        return
    for entity in entries:
        click.echo(f'{_entity_key(entity)}  {_item_label(collection, entity)}')


@cli.command(name='add')
@click.argument('collection', type=click.Choice(('supports',) + EDITABLE_COLLECTIONS))
@click.option('--set', 'assignments', multiple=True, metavar='KEY=VALUE', help='Field value (repeatable)')
@click.option('--mission', 'mission_id', help='Owning mission, for supports')
@click.pass_context
def add_item(ctx: click.Context, collection: str, assignments: tuple, mission_id: Optional[str]):
    """Add an entry to a collection of the current analysis."""
    values = _parse_assignments(_field_model(collection), assignments)
    try:
        entity = _app(ctx).store.add(collection, values, parent_id=mission_id)
    except EDIT_ERRORS as e:
        _fail(f'Failed to add entry: {e}')
    click.echo(click.style(f'Added to {collection}: {_entity_key(entity)}', fg='green'))


@cli.command(name='update')
@click.argument('collection', type=click.Choice(('supports',) + EDITABLE_COLLECTIONS))
@click.argument('item_id')
@click.option('--set', 'assignments', multiple=True, required=True, metavar='KEY=VALUE', help='Field value (repeatable)')
@click.option('--mission', 'mission_id', help='Owning mission, for supports')
@click.pass_context
def update_item(ctx: click.Context, collection: str, item_id: str, assignments: tuple, mission_id: Optional[str]):
    """Change fields of an entry; supports are addressed by name."""
    values = _parse_assignments(_field_model(collection), assignments)
    try:
        entity = _app(ctx).store.update(collection, item_id, values, parent_id=mission_id)
    except EDIT_ERRORS as e:
        _fail(f'Failed to update entry: {e}')
    click.echo(click.style(f'Updated: {_entity_key(entity)}', fg='green'))


@cli.command(name='remove')
@click.argument('collection', type=click.Choice(('supports',) + EDITABLE_COLLECTIONS))
@click.argument('item_id')
@click.option('--mission', 'mission_id', help='Owning mission, for supports')
@click.confirmation_option(prompt='Supprimer cet élément ?')
@click.pass_context
def remove_item(ctx: click.Context, collection: str, item_id: str, mission_id: Optional[str]):
    """Remove an entry; removing a mission also removes its feared events."""
    try:
        _app(ctx).store.remove(collection, item_id, parent_id=mission_id)
    except EDIT_ERRORS as e:
        _fail(f'Failed to remove entry: {e}')
    click.echo(click.style('Entry removed.', fg='green'))


@cli.command()
@click.argument('collection', type=click.Choice(tuple(COLLECTIONS)))
@click.argument('item_id')
@click.argument('field')
@click.argument('value')
@click.pass_context
def link(ctx: click.Context, collection: str, item_id: str, field: str, value: str):
    """Add a reference to a multi-valued field, e.g. ppc ID supportIds ERP."""
    try:
        entity = _app(ctx).store.link(collection, item_id, field, value)
    except EDIT_ERRORS as e:
        _fail(f'Failed to link: {e}')
    click.echo(f'{field}: {", ".join(getattr(entity, field))}')


@cli.command()
@click.argument('collection', type=click.Choice(tuple(COLLECTIONS)))
@click.argument('item_id')
@click.argument('field')
@click.argument('value')
@click.pass_context
def unlink(ctx: click.Context, collection: str, item_id: str, field: str, value: str):
    """Remove a reference from a multi-valued field."""
    try:
        entity = _app(ctx).store.unlink(collection, item_id, field, value)
    except EDIT_ERRORS as e:
        _fail(f'Failed to unlink: {e}')
    click.echo(f'{field}: {", ".join(getattr(entity, field))}')


@cli.command(name='mission-description')
@click.argument('text')
@click.pass_context
def mission_description(ctx: click.Context, text: str):
    """Set the mission statement of the current analysis."""
    try:
        _app(ctx).store.set_mission_description(text)
    except STORE_ERRORS as e:
        _fail(f'Failed to save description: {e}')
    click.echo(click.style('Description saved.', fg='green'))


@cli.group()
def support():
    """Share supports between missions."""
    pass


@support.command(name='copy')
@click.argument('mission_id')
@click.argument('names', nargs=-1)
@click.option('--search', '-s', help='Only offer supports matching this text')
@click.pass_context
def support_copy(ctx: click.Context, mission_id: str, names: tuple, search: Optional[str]):
    """Attach supports already used by other missions."""
    store = _app(ctx).store
    try:
        mission = store.get('missions', mission_id)
        if not names:
            offered = available_for_selection(
                unique_supports_across_missions(store.require_current().data),
                [s.name.strip() for s in mission.supports],
                key='name',
            )
            names = ClickSelectionDialog(search).choose(
                'Ajouter un support existant',
                [SelectionCandidate(s.name, s.name, s.description, s.responsable) for s in offered],
            )
        for name in names:
            store.add_existing_support(mission_id, name)
    except EDIT_ERRORS as e:
        _fail(f'Failed to copy support: {e}')
    click.echo(click.style(f'{len(names)} support(s) attached.', fg='green'))


@cli.group()
def step():
    """Edit the kill chain steps of an operational scenario."""
    pass


@step.command(name='add')
@click.argument('scenario_id')
@click.argument('stage', type=click.Choice(KILL_CHAIN_STAGES))
@click.argument('text')
@click.pass_context
def step_add(ctx: click.Context, scenario_id: str, stage: str, text: str):
    """Append a step to a kill chain stage."""
    try:
        scenario = _app(ctx).store.add_stage_step(scenario_id, stage, text)
    except EDIT_ERRORS as e:
        _fail(f'Failed to add step: {e}')
    click.echo(f'{stage}: {", ".join(getattr(scenario, stage))}')


@step.command(name='remove')
@click.argument('scenario_id')
@click.argument('stage', type=click.Choice(KILL_CHAIN_STAGES))
@click.argument('text')
@click.pass_context
def step_remove(ctx: click.Context, scenario_id: str, stage: str, text: str):
    """Remove a step from a kill chain stage."""
    try:
        scenario = _app(ctx).store.remove_stage_step(scenario_id, stage, text)
    except EDIT_ERRORS as e:
        _fail(f'Failed to remove step: {e}')
    click.echo(f'{stage}: {", ".join(getattr(scenario, stage))}')


@cli.group()
def risk():
    """Attach named risks to operational scenarios."""
    pass


@risk.command(name='add')
@click.argument('scenario_id')
@click.argument('names', nargs=-1)
@click.option('--search', '-s', help='Only offer risks matching this text')
@click.pass_context
def risk_add(ctx: click.Context, scenario_id: str, names: tuple, search: Optional[str]):
    """Attach risks from the technique library, or the names given."""
    app = _app(ctx)
    try:
        scenario = app.store.get('so', scenario_id)
        if not names:
            app.catalogue.ensure_loaded()
            offered = available_for_selection(app.catalogue.risk_library(), [r.name for r in scenario.risks])
            names = ClickSelectionDialog(search).choose('Ajouter des risques', offered)
        scenario = app.store.add_scenario_risks(scenario_id, names)
    except EDIT_ERRORS as e:
        _fail(f'Failed to add risks: {e}')
    click.echo(f'Risques: {", ".join(r.name for r in scenario.risks)}')


@risk.command(name='remove')
@click.argument('scenario_id')
@click.argument('name')
@click.pass_context
def risk_remove(ctx: click.Context, scenario_id: str, name: str):
    """Detach a risk from an operational scenario."""
    try:
        scenario = _app(ctx).store.remove_scenario_risk(scenario_id, name)
    except EDIT_ERRORS as e:
        _fail(f'Failed to remove risk: {e}')
    click.echo(f'Risques: {", ".join(r.name for r in scenario.risks)}')


@cli.group()
def action():
    """Edit the actions of an action plan row."""
    pass


@action.command(name='add')
@click.argument('kind', type=click.Choice(IMPORT_KINDS))
@click.argument('row_key')
@click.option('--set', 'assignments', multiple=True, metavar='KEY=VALUE', help='Field value (repeatable)')
@click.pass_context
def action_add(ctx: click.Context, kind: str, row_key: str, assignments: tuple):
    """Add an action to the row of a requirement, support, party or risk."""
    values = _parse_assignments(Action, assignments)
    try:
        entity = _app(ctx).store.add_action(IMPORT_COLLECTIONS[kind], row_key, values)
    except EDIT_ERRORS as e:
        _fail(f'Failed to add action: {e}')
    click.echo(click.style(f'Action added: {entity.name or "(sans nom)"}', fg='green'))


@action.command(name='update')
@click.argument('kind', type=click.Choice(IMPORT_KINDS))
@click.argument('row_key')
@click.argument('position', type=click.IntRange(min=1))
@click.option('--set', 'assignments', multiple=True, required=True, metavar='KEY=VALUE', help='Field value (repeatable)')
@click.pass_context
def action_update(ctx: click.Context, kind: str, row_key: str, position: int, assignments: tuple):
    """Change an action; POSITION counts from 1."""
    values = _parse_assignments(Action, assignments)
    try:
        entity = _app(ctx).store.update_action(IMPORT_COLLECTIONS[kind], row_key, position - 1, values)
    except EDIT_ERRORS as e:
        _fail(f'Failed to update action: {e}')
    click.echo(click.style(f'Action updated: {entity.name or "(sans nom)"}', fg='green'))


@action.command(name='remove')
@click.argument('kind', type=click.Choice(IMPORT_KINDS))
@click.argument('row_key')
@click.argument('position', type=click.IntRange(min=1))
@click.pass_context
def action_remove(ctx: click.Context, kind: str, row_key: str, position: int):
    """Remove an action; POSITION counts from 1."""
    try:
        _app(ctx).store.remove_action(IMPORT_COLLECTIONS[kind], row_key, position - 1)
    except EDIT_ERRORS as e:
        _fail(f'Failed to remove action: {e}')
    click.echo(click.style('Action removed.', fg='green'))


@cli.group()
def techniques():
    """Manage the attack technique library."""
    pass


@techniques.command(name='load')
@click.argument('source', required=False)
@click.option('--select', 'selected', multiple=True, help='Technique id to keep (repeatable)')
@click.option('--all', 'select_all', is_flag=True, help='Keep every technique of the catalogue')
@click.pass_context
def techniques_load(ctx: click.Context, source: Optional[str], selected: tuple, select_all: bool):
    """Fetch a technique catalogue and keep a selection of it."""
    catalogue = _app(ctx).catalogue
    available = catalogue.fetch(source)
    if catalogue.notice:
        click.echo(click.style(catalogue.notice, fg='yellow'), err=True)
    if not available:
        _fail('No technique available.')
    if select_all:
        ids = [t.id for t in available]
    elif selected:
        ids = list(selected)
    else:
        ids = ClickSelectionDialog().choose(
            'Sélectionner des techniques',
            [SelectionCandidate(t.id, t.risk_name, t.description) for t in available],
        )
    try:
        kept = catalogue.select(ids)
    except PersistenceError as e:
        _fail(f'Failed to save technique library: {e}')
    click.echo(click.style(f'{len(kept)} technique(s) kept.', fg='green'))


@techniques.command(name='list')
@click.option('--search', '-s', help='Filter on id, title or description')
@click.pass_context
def techniques_list(ctx: click.Context, search: Optional[str]):
    """List the technique library, or the default risk names when empty."""
    catalogue = _app(ctx).catalogue
    if search and catalogue.techniques:
        for technique in catalogue.search(search):
            click.echo(f'{technique.id}  {technique.title}')
        return
    for candidate in catalogue.risk_library():
        click.echo(candidate.label)


@cli.command()
@click.argument('kind', type=click.Choice(['network', 'srov']))
@click.option('--output', '-o', type=click.Path(), help='Output file path')
@click.option('--format', '-f', 'output_format', type=click.Choice(['svg', 'png', 'pdf', 'dot', 'mermaid']), default='mermaid')
@click.pass_context
def diagram(ctx: click.Context, kind: str, output: Optional[str], output_format: str):
    """Draw the missions/supports network or the risk source network."""
    app = _app(ctx)
    try:
        data = app.store.require_current().data
    except NoAnalysisSelectedError as e:
        _fail(str(e))
    width, height = app.settings.diagram_width, app.settings.diagram_height
    if kind == 'network':
        generator = MissionSupportDiagram(projector.mission_support_network(data, width, height))
    else:
        generator = SrovDiagram(projector.srov_network(data, width, height))

    if output_format in ('mermaid', 'dot'):
        content = generator.to_mermaid() if output_format == 'mermaid' else generator.generate_dot()
        if output:
            Path(output).write_text(content, encoding='utf-8')
            click.echo(click.style(f'Diagram generated: {output}', fg='green'))
        else:
            click.echo(content)
    else:
        output_file = generator.render_to_file(output or kind, output_format)
        click.echo(click.style(f'Diagram generated: {output_file}', fg='green'))


@cli.command()
@click.pass_context
def plan(ctx: click.Context):
    """Print the consolidated action plan."""
    try:
        data = _app(ctx).store.require_current().data
    except NoAnalysisSelectedError as e:
        _fail(str(e))
    action_plan = projector.action_plan(data)
    if not action_plan.rows:
        click.echo(click.style('Aucune action planifiée.', fg='yellow'))
        return
    for row in action_plan.rows:
        dates = f'{row.start or "?"} -> {row.end or "?"}'
        click.echo(f'{row.name or "(sans nom)"}  [{row.source}]  {dates}  {row.responsable}')
    if action_plan.timeline:
        click.echo(f'\nPériode: {action_plan.start} -> {action_plan.end} ({action_plan.span_days} jours)')


@cli.command()
@click.option('--id', 'analysis_id', help='Analysis id (defaults to the current one)')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Output HTML file path')
@click.pass_context
def report(ctx: click.Context, analysis_id: Optional[str], output: Optional[str]):
    """Generate an HTML report for an analysis."""
    try:
        analysis = _target(_app(ctx), analysis_id)
    except STORE_ERRORS as e:
        _fail(str(e))
    output_path = Path(output) if output else Path(export_filename(analysis.title)).with_suffix('.html')
    try:
        ReportGenerator().generate_to_file(analysis, output_path)
    except OSError as e:
        _fail(f'Failed to generate report: {e}')
    click.echo(click.style('Report generated successfully!', fg='green'))
    click.echo(f'  Output: {output_path}')


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
