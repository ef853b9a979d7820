"""Graph builder engine — go mod graph output to persisted module graphs."""

from modrank.engines.graph_builder.builder import GraphBuilder, build_module_graph
from modrank.engines.graph_builder.command import GoModGraphRunner, GraphCommandRunner
from modrank.engines.graph_builder.models import GoModule, module_id
from modrank.engines.graph_builder.module import resolve_module, split_mod_path
from modrank.engines.graph_builder.resolver import HostedRepositoryResolver

__all__ = [
    "GoModGraphRunner",
    "GoModule",
    "GraphBuilder",
    "GraphCommandRunner",
    "HostedRepositoryResolver",
    "build_module_graph",
    "module_id",
    "resolve_module",
    "split_mod_path",
]
