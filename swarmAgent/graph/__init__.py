"""LangGraph phase machine of one orchestration cycle.

Import ``swarmAgent.graph.builder.build_cycle_graph`` directly; this package
stays import-light because the execution modes depend on ``graph.state``.
"""
