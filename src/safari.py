import time
import numpy
from matplotlib import pyplot
from utils.params import SPECIES, DEFAULT_SCRIPT, CaptureRequest, SpeciesParams, parse_script, script_label, time_str
from utils.probability import Precision
from procs.tables import STAY_FLEE, CATCH_MISS, print_probability_table
from procs.state import MAX_ROCK_CATCH_FACTOR
from procs.enumeration import enumerate_tree, enumerate_parallel, propagate, write_trace
from procs.tree_graph import render_tree

DEBUG = False
TRACE_FILE = 'out/trace.txt'

class SafariCalculator:
	def __init__(self):
		self.species = SPECIES['chansey']
		self.script = DEFAULT_SCRIPT
		self.precision = Precision.FLOAT

	@property
	def job(self) -> CaptureRequest:
		return CaptureRequest(species=self.species, script=self.script, precision=self.precision)

	def edit_species(self):
		print("\nEdit Species (press Enter to keep current value)")
		print(f"Known species: {', '.join(SPECIES)}")

		name = input(f"Species [{self.species.name}]: ").strip().lower()
		if name in SPECIES:
			self.species = SPECIES[name]
			print(f"Using {self.species.name}: catch rate {self.species.catch_rate}, flee rate {self.species.flee_rate}")
			return

		catch_rate = self.species.catch_rate
		input_catch = input(f"Catch rate [{catch_rate}]: ").strip()
		if input_catch:
			try:
				catch_rate = int(input_catch)
			except ValueError:
				print("Invalid catch rate")

		flee_rate = self.species.flee_rate
		input_flee = input(f"Flee rate [{flee_rate}]: ").strip()
		if input_flee:
			try:
				flee_rate = int(input_flee)
			except ValueError:
				print("Invalid flee rate")

		species = SpeciesParams(name=name.title() or self.species.name, catch_rate=catch_rate, flee_rate=flee_rate)
		try:
			CaptureRequest(species=species, script=self.script)
		except ValueError as e:
			print(f"Invalid species: {e}")
			return
		self.species = species
		print(f"Using {self.species.name}: catch rate {self.species.catch_rate}, flee rate {self.species.flee_rate}")

	def edit_script(self):
		print("\nEdit Script: L = ball, T = bait, R = rock (press Enter to keep current value)")
		label = input(f"Script [{script_label(self.script)}]: ").strip()
		if not label:
			return
		try:
			script = parse_script(label)
			CaptureRequest(species=self.species, script=script)
		except ValueError as e:
			print(f"Invalid script: {e}")
			return
		self.script = script
		print(f"Script is now {script_label(self.script)} ({len(self.script)} turns)")

	def toggle_precision(self):
		self.precision = Precision.EXACT if self.precision == Precision.FLOAT else Precision.FLOAT
		print(f"Using {self.precision.value} arithmetic")

	def run_calc(self, mode: str):
		job = self.job
		print(f"Running {job.species.name} {script_label(job.script)} ({mode}, {job.precision.value})...")
		start_time = time.time()

		match mode:
			case 'tree':
				tally = enumerate_tree(job)
			case 'parallel':
				tally = enumerate_parallel(job)
			case 'turns':
				tally = propagate(job)
		elapsed = time.time() - start_time

		print(f"Catch probability = {job.precision.format(tally.caught)}")
		print(f"  Fled: {job.precision.format(tally.fled)} | Script exhausted: {job.precision.format(tally.exhausted)}")
		if mode == 'turns':
			print(f"  Distinct states explored: {sum(tally.states_by_turn):,} in {time_str(elapsed)}")
		else:
			print(f"  Possibilities explored: {tally.nodes:,} in {time_str(elapsed)}")
			if DEBUG: print(f"  Total probability: {job.precision.format(tally.total)}")

	def trace(self):
		start_time = time.time()
		try:
			tally = write_trace(self.job, TRACE_FILE)
		except ValueError as e:
			print(f"Cannot trace: {e}")
			return
		print(f"Traced {tally.nodes:,} nodes to {TRACE_FILE} in {time_str(time.time() - start_time)}")
		print(f"Catch probability = {self.precision.format(tally.caught)}")

	def render(self):
		try:
			render_tree(self.job)
		except ValueError as e:
			print(f"Cannot draw tree: {e}")

	def graph(self):
		print("\nGraph types:")
		print("1: Stay/flee table")
		print("2: Catch table")
		print("3: Cumulative outcome by turn")
		choice = input("Select graph type (1-3): ").strip()

		match choice:
			case '1':
				self._graph_stay_flee()
			case '2':
				self._graph_catch()
			case '3':
				self._graph_cumulative()
			case _:
				print("Invalid choice")

	def _graph_stay_flee(self):
		pyplot.figure(figsize=(12, 7))
		rates = numpy.arange(0, 101)
		flee = [float(STAY_FLEE[r][1]) for r in rates]
		pyplot.plot(rates, flee, color='#ED1C24', label='Flee', linewidth=2)
		pyplot.plot(rates, rates / 100, '--', color='#9B59B6', label='Uniform', linewidth=1)
		pyplot.xlabel("Flee rate (%)")
		pyplot.ylabel("Probability")
		pyplot.title("Flee probability per turn")
		pyplot.legend()
		pyplot.grid(True, alpha=0.3)
		pyplot.show()

	def _graph_catch(self):
		pyplot.figure(figsize=(12, 7))
		factors = numpy.arange(0, MAX_ROCK_CATCH_FACTOR + 1)
		catch = [float(CATCH_MISS[f][0]) for f in factors]
		pyplot.bar(factors, catch, color='#76B900', alpha=0.7, label='Catch')
		pyplot.xlabel("Catch factor")
		pyplot.ylabel("Probability")
		pyplot.title("Safari ball catch probability")
		pyplot.legend()
		pyplot.grid(True, alpha=0.3)
		pyplot.show()

	def _graph_cumulative(self):
		distribution = propagate(self.job)
		turns = numpy.arange(1, len(self.script) + 1)
		caught = numpy.cumsum([float(p) for p in distribution.caught_by_turn])
		fled = numpy.cumsum([float(p) for p in distribution.fled_by_turn])

		pyplot.figure(figsize=(12, 7))
		pyplot.plot(turns, caught, 'o-', color='#76B900', label='Caught', linewidth=2, markersize=4)
		pyplot.plot(turns, fled, 'o-', color='#ED1C24', label='Fled', linewidth=2, markersize=4)
		pyplot.xticks(turns, [a.value for a in self.script])
		pyplot.xlabel("Action")
		pyplot.ylabel("Cumulative Probability")
		pyplot.title(f"{self.species.name} - Cumulative outcome by turn")
		pyplot.legend()
		pyplot.grid(True, alpha=0.3)
		pyplot.show()

	def run(self):
		commands = {
			'species': self.edit_species,
			'script': self.edit_script,
			'precision': self.toggle_precision,
			'trace': self.trace,
			'tables': print_probability_table,
			'graph': self.graph,
			'tree': self.render,
		}

		print("Safari Zone Capture Calculator")
		print("Commands: species, script, precision, run [tree|parallel|turns], trace, tables, graph, tree, exit")

		while True:
			try:
				cmd = input("\n> ").strip().lower()

				if not cmd:
					continue

				if cmd == 'exit':
					break

				if cmd == 'run' or cmd.startswith('run '):
					mode = cmd[4:].strip() or 'turns'
					if mode in ('tree', 'parallel', 'turns'):
						self.run_calc(mode)
					else:
						print("Invalid mode. Use 'tree', 'parallel' or 'turns'")
					continue

				handler = commands.get(cmd)
				if handler:
					handler()
				else:
					print("Unknown command. Try: species, script, precision, run [tree|parallel|turns], trace, tables, graph, tree, exit")

			except KeyboardInterrupt:
				print("\n\nExiting...")
				break
			except Exception as e:
				print(f"Error: {e}")

def main():
	calculator = SafariCalculator()
	calculator.run()

if __name__ == "__main__":
	main()
