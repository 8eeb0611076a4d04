import json

import pytest

from scripts.optimize_algorithm import PARAMETER_RANGES, main, parse_args


@pytest.fixture
def quiet_config(tmp_path):
    config_path = tmp_path / 'config.ini'
    config_path.write_text("[Logging]\nlevel = WARNING\nlog_to_file = false\n")
    return str(config_path)


def test_defaults():
    args = parse_args([])
    assert args.mode == 'full'
    assert args.no_cache is False
    assert args.seed is None


def test_quick_grid_is_smaller_than_full():
    def size(ranges):
        total = 1
        for values in ranges.values():
            total *= len(values)
        return total
    assert size(PARAMETER_RANGES['quick']) == 24
    assert size(PARAMETER_RANGES['full']) > size(PARAMETER_RANGES['quick'])


def test_quick_run_writes_outputs(tmp_path, quiet_config):
    output = tmp_path / 'results'
    exit_code = main([
        '--mode', 'quick', '--output', str(output), '--no-cache', '--seed', '3',
        '--days', '2', '--tokens', '15', '--cache-dir', str(tmp_path / 'cache'), '--config', quiet_config,
    ])
    assert exit_code == 0

    report = json.loads((output / 'optimization_report.json').read_text())
    assert report['mode'] == 'quick'
    assert report['totalCombinations'] == 24
    assert len(report['topConfigurations']) == 10
    scores = [c['score'] for c in report['topConfigurations']]
    assert scores == sorted(scores)
    assert report['bestScore'] == scores[0]

    best = json.loads((output / 'best_parameters.json').read_text())
    assert best['profit_weight'] in PARAMETER_RANGES['quick']['profit_weight']
    assert best['alpha_weight'] == 0.1

    sensitivity = json.loads((output / 'sensitivity_analysis.json').read_text())
    assert {row['parameter'] for row in sensitivity} == set(PARAMETER_RANGES['quick'])
    assert list(output.glob('optimization-report-*.md'))
    assert (tmp_path / 'cache' / 'simulated_calls.json').exists()
