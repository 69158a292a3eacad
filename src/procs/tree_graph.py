import os
from graphviz import Digraph
from utils.params import Action, Reaction, CaptureRequest, script_label
from procs.state import SafariState
from procs.enumeration import Node, expand

# Anything bigger is unreadable as a picture, use the text trace instead
MAX_GRAPH_NODES = 500

COLORS = {
	Reaction.CAUGHT: ('green', 'lightgreen'),
	Reaction.FLEE: ('red', 'pink'),
}

def node_label(node: Node) -> str:
	if node.action is None:
		return "start"
	match node.action:
		case Action.BALL:
			label = r"Ball\ncatch" if node.reaction == Reaction.CAUGHT else "Ball miss"
		case _:
			label = f"{node.action.name.title()} {node.before.counter(node.action)}=>{node.value}"
	if node.reaction == Reaction.WATCH:
		label += rf"\nB{node.state.bait_counter} R{node.state.rock_counter} C{node.state.catch_factor}"
	elif node.reaction == Reaction.FLEE:
		label += r"\nflee"
	return label + rf"\n{float(node.probability):.4%}"

def edge_label(node: Node) -> str:
	if node.reaction == Reaction.CAUGHT:
		return f"{float(node.action_probability):.3f}"
	return f"{float(node.action_probability):.3f} x {float(node.reaction_probability):.3f}"

def build_graph(job: CaptureRequest, max_nodes: int = MAX_GRAPH_NODES) -> Digraph:
	"""Lay out the whole enumeration tree, one graph node per tree node"""
	dot = Digraph(comment=f"{job.species.name} {script_label(job.script)}")
	dot.attr(rankdir='LR')
	dot.attr('node', fontsize='10', shape='box')
	dot.attr('edge', fontsize='9')

	root = Node.root(SafariState.initial(job.species), job.precision)
	pending = [('n0', root)]
	count = 0
	while pending:
		name, node = pending.pop()
		count += 1
		if count > max_nodes:
			raise ValueError(f"{script_label(job.script)} has more than {max_nodes} tree nodes, too many to draw")

		color, fill = COLORS.get(node.reaction, ('black', 'white'))
		dot.node(name, node_label(node), color=color, style='filled', fillcolor=fill)

		for i, child in enumerate(expand(node, job.script, job.precision)):
			child_name = f"{name}_{i}"
			dot.edge(name, child_name, label=edge_label(child))
			pending.append((child_name, child))

	return dot

def render_tree(job: CaptureRequest, path: str = 'out/tree', view: bool = False) -> str:
	dot = build_graph(job)
	os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
	output = dot.render(path, format='png', view=view, cleanup=True)
	print(f"Tree saved as {output}")
	return output
