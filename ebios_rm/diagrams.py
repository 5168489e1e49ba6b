"""Graphviz and Mermaid renderings of the network view-models."""

from abc import ABC, abstractmethod
from typing import Iterable

from graphviz import Digraph

from .projector import MissionSupportNetwork, SrovNetwork


def _node_ids(prefix: str, keys: Iterable[str]) -> dict[str, str]:
    """Map each key to a node id built from its position; repeated keys keep the first."""
    ids: dict[str, str] = {}
    for index, key in enumerate(keys):
        ids.setdefault(key, f'{prefix}{index}')
    return ids


def _safe_label(text: str) -> str:
    """Escape special characters in Mermaid labels."""
    if not text:
        return ''
    return (
        text.replace('"', "'").replace('[', '').replace(']', '')
        .replace('|', '-').replace('<', '').replace('>', '')
    )


class DiagramGenerator(ABC):
    """Common rendering entry points; subclasses fill the graph."""

    name = 'diagram'

    @abstractmethod
    def _build(self, graph: Digraph) -> None:
        ...

    @abstractmethod
    def to_mermaid(self) -> str:
        ...

    def generate(self, output_format: str = 'svg') -> tuple[str, Digraph]:
        graph = Digraph(name=self.name, format=output_format, engine='dot')
        graph.attr(rankdir='LR', nodesep='0.6', ranksep='1.5', fontname='Arial', fontsize='12')
        graph.attr('node', fontname='Arial', fontsize='10')
        graph.attr('edge', fontname='Arial', fontsize='9')
        self._build(graph)
        return graph.source, graph

    def generate_dot(self) -> str:
        source, _ = self.generate()
        return source

    def render_to_file(self, output_path: str, output_format: str = 'svg') -> str:
        _, graph = self.generate(output_format)
        return graph.render(output_path, cleanup=True)


class MissionSupportDiagram(DiagramGenerator):
    """Business values and the supporting assets they depend on."""

    name = 'missions_supports'

    def __init__(self, network: MissionSupportNetwork):
        self.network = network
        self.mission_ids = _node_ids('m', (node.id for node in network.missions))
        self.support_ids = _node_ids('s', (node.name for node in network.supports))

    def _edges(self):
        for edge in self.network.edges:
            source, target = self.mission_ids.get(edge.source), self.support_ids.get(edge.target)
            if source and target:
                yield source, target, edge

    def _build(self, graph: Digraph) -> None:
        with graph.subgraph(name='cluster_missions') as missions:
            missions.attr(label='Valeurs métier', style='dashed', color='#657a93')
            for node in self.network.missions:
                missions.node(
                    self.mission_ids[node.id],
                    label=node.name,
                    shape='triangle',
                    style='filled',
                    fillcolor=node.color,
                    tooltip=f'{node.name}\nImpact: {node.impact}',
                )
        with graph.subgraph(name='cluster_supports') as supports:
            supports.attr(label='Supports', style='dashed', color='#657a93')
            for node in self.network.supports:
                supports.node(
                    self.support_ids[node.name],
                    label=node.name,
                    shape='circle',
                    style='filled',
                    fillcolor=node.color,
                    width=f'{node.radius / 36:.2f}',
                    tooltip=f'{node.name}\nLiens: {node.degree}\nMax impact supporté: {node.max_impact}',
                )
        for source, target, edge in self._edges():
            graph.edge(source, target, color=edge.color, arrowhead='none')

    def to_mermaid(self) -> str:
        lines = ['flowchart LR']
        for node in self.network.missions:
            lines.append(f'    {self.mission_ids[node.id]}[/"{_safe_label(node.name)}"\\]')
        for node in self.network.supports:
            lines.append(f'    {self.support_ids[node.name]}(("{_safe_label(node.name)}"))')
        for source, target, _ in self._edges():
            lines.append(f'    {source} --- {target}')
        lines.append('')
        for node in self.network.missions:
            lines.append(f'    style {self.mission_ids[node.id]} fill:{node.color}')
        for node in self.network.supports:
            lines.append(f'    style {self.support_ids[node.name]} fill:{node.color}')
        return '\n'.join(lines)


class SrovDiagram(DiagramGenerator):
    """Risk sources pointing at their targeted objectives."""

    name = 'srov'

    def __init__(self, network: SrovNetwork):
        self.network = network
        self.source_ids = _node_ids('src', (node.name for node in network.sources))
        self.objective_ids = _node_ids('obj', (node.name for node in network.objectives))

    def _build(self, graph: Digraph) -> None:
        for node in self.network.sources:
            graph.node(
                self.source_ids[node.name],
                label=f'SOURCE DE RISQUE\n{node.name}',
                shape='box',
                style='filled',
                fillcolor='#8ecae6',
                color='#1d4ed8',
            )
        for node in self.network.objectives:
            graph.node(
                self.objective_ids[node.name],
                label=f'OBJECTIF VISÉ  P:{node.priority}\n{node.name}',
                shape='diamond',
                style='filled',
                fillcolor='#dfe7fd',
                color=node.color,
                penwidth='3',
            )
        for edge in self.network.edges:
            label = edge.label
            if edge.exclusion_label:
                label = f'{label}\n{edge.exclusion_label}'
            graph.edge(
                self.source_ids[edge.source],
                self.objective_ids[edge.target],
                label=label,
                color=edge.color,
                style=edge.style,
                penwidth='2',
            )

    def to_mermaid(self) -> str:
        lines = ['flowchart LR']
        for node in self.network.sources:
            lines.append(f'    {self.source_ids[node.name]}["{_safe_label(node.name)}"]')
        for node in self.network.objectives:
            lines.append(f'    {self.objective_ids[node.name]}{{"{_safe_label(node.name)} P:{node.priority}"}}')
        for edge in self.network.edges:
            arrow = '-->' if edge.retenue else '-.->'
            label = _safe_label(edge.exclusion_label or f'P={edge.pertinence}')
            source, target = self.source_ids[edge.source], self.objective_ids[edge.target]
            lines.append(f'    {source} {arrow}|{label}| {target}')
        lines.append('')
        for index, edge in enumerate(self.network.edges):
            lines.append(f'    linkStyle {index} stroke:{edge.color},stroke-width:2px')
        return '\n'.join(lines)
