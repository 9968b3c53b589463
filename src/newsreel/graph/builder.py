"""StateGraph definition — prepare, parallel voice/visuals, assembly, finalize."""

from __future__ import annotations

from langgraph.graph import END, StateGraph

from newsreel.graph.state import RenderState
from newsreel.nodes.assembler import assemble_video
from newsreel.nodes.finalize import finalize
from newsreel.nodes.prepare import prepare
from newsreel.nodes.visuals import source_visuals
from newsreel.nodes.voice import synthesize_voice


def build_graph():
    """Build and compile the render graph.

    ``prepare`` resolves ffmpeg first; voice and visuals then run as
    parallel branches (their outputs are independent until assembly) and
    join at ``assemble_video``.

    Returns:
        Compiled StateGraph ready for invocation.
    """
    graph = StateGraph(RenderState)

    # Add nodes
    graph.add_node("prepare", prepare)
    graph.add_node("synthesize_voice", synthesize_voice)
    graph.add_node("source_visuals", source_visuals)
    graph.add_node("assemble_video", assemble_video)
    graph.add_node("finalize", finalize)

    # Entry point
    graph.set_entry_point("prepare")

    # Fan out after preparation
    graph.add_edge("prepare", "synthesize_voice")
    graph.add_edge("prepare", "source_visuals")

    # Join: assembly waits for both branches
    graph.add_edge(["synthesize_voice", "source_visuals"], "assemble_video")

    graph.add_edge("assemble_video", "finalize")
    graph.add_edge("finalize", END)

    return graph.compile()
