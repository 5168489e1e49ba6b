"""HTML report generator for EBIOS RM analyses."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from . import projector
from .diagrams import MissionSupportDiagram, SrovDiagram
from .schemas import Analysis


class ReportGenerator:
    """Generates static HTML reports from analyses."""

    def __init__(self, template_dir: Optional[Path] = None):
        if template_dir is None:
            template_dir = Path(__file__).parent / 'templates'
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(['html', 'xml'])
        )

    def generate(self, analysis: Analysis) -> str:
        data = analysis.data
        network = projector.mission_support_network(data)
        srov = projector.srov_network(data)

        context = {
            'analysis': analysis,
            'generation_timestamp': datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC'),
            'summary': projector.analysis_summary(analysis),
            'missions': projector.mission_table(data),
            'events': projector.event_table(data),
            'network_mermaid': Markup(MissionSupportDiagram(network).to_mermaid()) if network.missions else '',
            'donut': projector.compliance_donut(data.gap),
            'gap': data.gap,
            'srov': projector.srov_table(data),
            'srov_mermaid': Markup(SrovDiagram(srov).to_mermaid()) if not srov.is_empty else '',
            'stakeholders': projector.stakeholder_table(data),
            'radar': projector.stakeholder_radar(data),
            'strategies': projector.strategy_table(data),
            'scenarios': projector.scenario_table(data),
            'likelihood': projector.scenario_likelihood_histogram(data),
            'risks': data.risques,
            'gravity': projector.risk_gravity_counts(data),
            'risk_actions': projector.risk_action_table(data),
            'plan': projector.action_plan(data),
        }

        template = self.env.get_template('report.html')
        return template.render(**context)

    def generate_to_file(self, analysis: Analysis, output_path: Path) -> Path:
        html_content = self.generate(analysis)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(html_content)
        return output_path


def generate_report(analysis: Analysis, output_path: Optional[Path] = None) -> str:
    """Generate an HTML report from an analysis."""
    generator = ReportGenerator()
    html_content = generator.generate(analysis)
    if output_path:
        generator.generate_to_file(analysis, output_path)
    return html_content
