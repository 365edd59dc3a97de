# To run: python vmp_compare.py -i vmp_search.cfg

import logging
import optparse
import sys

import pandas as pd
import matplotlib.pyplot as plt

from ResourceView import DIMENSIONS
from VariationStrategy import greedy_assignment
from VmpConfig import VmpConfig
from VmpFitness import evaluate, host_loads
from VmpIndividual import make_pool
from VmpSearch import search


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------
def get_host_details(assignment, resources, algo_name):
    """
    Per-host load logs to show which capacity limits are hit.
    """
    loads, vm_counts, _ = host_loads(assignment, resources)
    details = []
    for h in range(resources.host_count):
        row = {'Algorithm': algo_name, 'Host': resources.host_ids[h], 'VMs': int(vm_counts[h])}
        for d in DIMENSIONS:
            row[f'{d.upper()}_Used'] = round(float(loads[d][h]), 2)
            row[f'{d.upper()}_Limit'] = round(float(resources.caps[d][h]), 2)
            row[f'{d.upper()}_Overloaded'] = bool(loads[d][h] > resources.caps[d][h] + 0.001)
        details.append(row)
    return details


def summarize(algo_name, fitness, feasible, breakdown, extra=None):
    row = {'algorithm': algo_name, 'best_fitness': fitness, 'feasible': feasible}
    row.update({f'obj_{k}': v for k, v in breakdown.items()})
    row.update(extra or {})
    return row


# ---------------------------------------------------------
# Main Comparison Loop
# ---------------------------------------------------------
def run_comparison(cfg):
    resources = cfg.resources()
    params = cfg.search_parameters()
    print(f"Snapshot: {resources.vm_count} VMs on {resources.host_count} hosts")

    results = []
    allocations = {}
    host_logs = []
    convergence = []

    # ---------------------------------------------
    # Phase A: Smart Greedy (Baseline)
    # ---------------------------------------------
    greedy_assign = greedy_assignment(resources)
    g_fit, g_feasible, g_breakdown = evaluate(greedy_assign, resources, params.weights)
    results.append(summarize('greedy', g_fit, g_feasible, g_breakdown))
    allocations['greedy'] = greedy_assign
    host_logs.extend(get_host_details(greedy_assign, resources, 'greedy'))
    if not g_feasible:
        print(f"  [!] Greedy Overloaded! Penalty: +{g_breakdown['infeasibility']:.3f}")
    print(f"  greedy       fitness={g_fit:.4f}")

    # ---------------------------------------------
    # Phase B: Population searches
    # ---------------------------------------------
    pool = make_pool(cfg.n_proc, resources, params.weights) if cfg.n_proc > 1 else None
    try:
        for name in cfg.strategies:
            print(f"Running {name}...")
            res = search(resources.vm_count, resources.host_count, params, resources, name, pool)
            s = res.stats
            results.append(summarize(name, res.best_fitness, res.feasible, res.objective_breakdown, {
                'converged': s.converged,
                'iterations': s.iterations,
                'evaluations': s.evaluations,
                'execution_time_ms': s.execution_time_ms,
                **res.statistics,
            }))
            allocations[name] = res.best_assignment
            host_logs.extend(get_host_details(res.best_assignment, resources, name))
            convergence.append(res.record.to_frame().assign(algorithm=name))
            print(f"  {name:<12} fitness={res.best_fitness:.4f} "
                  f"({'converged' if s.converged else s.state.value} at {s.iterations}, "
                  f"{s.evaluations} evaluations, {s.execution_time_ms:.0f} ms)")
    finally:
        if pool is not None:
            pool.close(); pool.join()

    alloc_df = pd.DataFrame({'VM_ID': resources.vm_ids})
    for name, assign in allocations.items():
        alloc_df[f'{name}_Host'] = [resources.host_ids[h] if 0 <= h < resources.host_count else None
                                   for h in assign]

    conv_df = pd.concat(convergence, ignore_index=True) if convergence else pd.DataFrame()
    return pd.DataFrame(results), conv_df, alloc_df, pd.DataFrame(host_logs)


# ---------------------------------------------------------
# Visualization
# ---------------------------------------------------------
def plot_convergence(conv_df, save_path='vmp_convergence.png'):
    if conv_df.empty:
        return
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 5))
    for name, grp in conv_df.groupby('algorithm'):
        ax1.plot(grp['iteration'], grp['best_fitness'], marker='o', markersize=3, label=name)
        ax2.plot(grp['iteration'], grp['diversity'], marker='o', markersize=3, label=name)

    ax1.set_title('(a) Best-Ever Fitness')
    ax1.set_xlabel('Iteration')
    ax1.set_ylabel('Fitness (lower is better)')
    ax1.grid(True, alpha=0.3)
    ax1.legend()

    ax2.set_title('(b) Population Diversity')
    ax2.set_xlabel('Iteration')
    ax2.set_ylabel('Mean pairwise Hamming distance')
    ax2.set_ylim(0, 1)
    ax2.grid(True, alpha=0.3)
    ax2.legend()

    plt.tight_layout()
    plt.savefig(save_path)
    plt.close(fig)


def main(argv=None):
    if argv is None:
        argv = sys.argv

    try:
        parser = optparse.OptionParser()
        parser.add_option("-i", "--input", action="store", dest="inputFileName",
                          help="input configuration file", default="vmp_search.cfg")
        parser.add_option("-v", "--verbose", action="store_true", dest="verbose", default=False)
        (options, args) = parser.parse_args(argv)

        logging.basicConfig(level=logging.DEBUG if options.verbose else logging.WARNING,
                            format='%(asctime)s %(name)s %(levelname)s %(message)s')

        cfg = VmpConfig(options.inputFileName)

        print("=" * 80)
        print("VM PLACEMENT: Population Search Comparison")
        print("=" * 80)

        res_df, conv_df, alloc_df, host_df = run_comparison(cfg)

        prefix = cfg.output_prefix
        res_df.to_csv(f"{prefix}_comparison_results.csv", index=False)
        conv_df.to_csv(f"{prefix}_convergence.csv", index=False)
        alloc_df.to_csv(f"{prefix}_allocations.csv", index=False)
        host_df.to_csv(f"{prefix}_host_load_details.csv", index=False)
        plot_convergence(conv_df, f"{prefix}_convergence.png")

        print("\n[Comparison]")
        print(res_df[['algorithm', 'best_fitness', 'feasible']].to_string(index=False))
        print("\nOutput Files:")
        print(f"  - {prefix}_comparison_results.csv (Summary)")
        print(f"  - {prefix}_convergence.csv (Fitness & Diversity per Iteration)")
        print(f"  - {prefix}_allocations.csv (Allocation Plan)")
        print(f"  - {prefix}_host_load_details.csv (Per-Host Loads)")
        print(f"  - {prefix}_convergence.png")
        print("=" * 80)

    except Exception as info:
        print(f"Error: {info}")
        sys.exit(1)


if __name__ == "__main__":
    main()
