import numpy as np
import matplotlib.pyplot as plt
from sklearn.linear_model import LogisticRegression as SklearnLogisticRegression

from obj_problems import LogisticRegressionFunction
from trainer import CentralizedTrainer
from utils import generate_and_preprocess_data


class Simulator:
    def __init__(self, config):
        self.config = config
        self.predictors, self.responses = generate_and_preprocess_data(config)
        self.function = LogisticRegressionFunction(self.predictors, self.responses,
                                                   config['l2_regularization_lambda'])
        self.n_points = self.function.num_functions()
        self.w_opt, self.f_opt = self._compute_reference_optimum()
        self.results = {}
        self.numerical_results = {}

    def _compute_reference_optimum(self):
        lambda_reg = self.config['l2_regularization_lambda']
        max_iter_ref = 5000
        tol_ref = 1e-9

        # Compute the reference optimum, for suboptimality calculation.
        # sklearn minimizes 0.5 * ||w||^2 + C * sum(loss) and leaves the intercept unpenalized,
        # which is this objective scaled by 1 / lambda.
        C_param = 1.0 / lambda_reg if lambda_reg > 1e-12 else 1e12
        solver = SklearnLogisticRegression(
            C=C_param, fit_intercept=True, solver='lbfgs',
            max_iter=max_iter_ref, tol=tol_ref)
        solver.fit(self.predictors.T, self.responses)
        w_opt = np.concatenate([solver.intercept_, solver.coef_.ravel()]).reshape(1, -1)

        f_opt_val = self.function.evaluate(w_opt)
        ref_accuracy = self.function.compute_accuracy(self.predictors, self.responses, w_opt)
        print(f"Ref f(x*) calculated: {f_opt_val:.6f}, accuracy: {ref_accuracy:.2f}%")
        return w_opt, f_opt_val

    def _record_numerical_results(self, label, history, trainer):
        threshold = self.config.get('suboptimality_threshold', 0.05)
        objective_history = np.array(history.get('objective', []))
        iters_to_threshold = -1
        # Check if objective history is not empty, then find the first index where it is below the threshold
        if len(objective_history) > 0:
            reached_indices = np.where(objective_history <= threshold)[0]
            if len(reached_indices) > 0:
                iters_to_threshold = reached_indices[0] + 1

        accuracy_history = history.get('accuracy', [])
        self.numerical_results[label] = {
            'iterations_to_threshold': iters_to_threshold,
            'final_accuracy': accuracy_history[-1] if accuracy_history else float('nan'),
            'total_samples_processed': trainer.total_samples_processed,
        }

    def run_all(self):
        print(f"\n=== Starting Simulation: logistic, {self.n_points} points ===")
        n_iterations = self.config['n_iterations']

        for n_workers in self.config['worker_counts']:
            trainer_config = dict(self.config, n_workers=n_workers)
            trainer = CentralizedTrainer(self.function, trainer_config)
            history, _ = trainer.run(n_iterations, f_opt=self.f_opt)

            # Per-point suboptimality gap, comparable across dataset sizes
            history['objective'] = [gap / self.n_points for gap in history['objective']]
            label = f"C-SGD ({n_workers} workers)"
            self.results[label] = history
            self._record_numerical_results(label, history, trainer)

        print("\n=== Simulation Finished ===")
        self.report_numerical_results()

    def report_numerical_results(self):
        print("\n--- Numerical Results ---")
        threshold = self.config.get('suboptimality_threshold', 0.05)
        print(f"Target Suboptimality Gap Threshold (per point): {threshold}")
        sorted_labels = sorted(self.numerical_results.keys())
        max_label_len = max(len(label) for label in sorted_labels) + 2 if sorted_labels else 2

        print(f"\nIterations to reach suboptimality gap <= {threshold}:")
        for label in sorted_labels:
            iters = self.numerical_results[label]['iterations_to_threshold']
            if iters == -1: print(f"  {label:<{max_label_len}}: > {self.config['n_iterations']} , threshold not reached")
            else: print(f"  {label:<{max_label_len}}: {iters} iterations")

        print("\nFinal training accuracy and samples processed:")
        for label in sorted_labels:
            data = self.numerical_results[label]
            print(f"  {label:<{max_label_len}}: {data['final_accuracy']:.2f}%, "
                  f"{data['total_samples_processed']:.3e} samples")

    def plot_results(self):
        iterations = np.arange(1, self.config['n_iterations'] + 1)
        plot_configs = [
            ('objective', 'Suboptimality Gap per point ($(f(x_T) - f(x^*)) / n$)', True),
            ('accuracy', 'Training accuracy (%)', False)]
        num_plots = len(plot_configs)
        plt.figure(figsize=(7 * num_plots, 6))

        for plot_idx, (metric_key, title, use_log_scale) in enumerate(plot_configs, 1):
            ax = plt.subplot(1, num_plots, plot_idx)
            for label in sorted(self.results.keys()):
                metric_data = self.results[label].get(metric_key, [])
                if len(metric_data) != self.config['n_iterations']:
                    print(f"Warning: Mismatched data length for metric '{metric_key}' in '{label}'. Skipping.")
                    continue
                values_to_plot = np.array(metric_data, dtype=float)
                # Prevent plot errors for non-finite values
                if np.any(~np.isfinite(values_to_plot)):
                    print(f"Warning: Non-finite values found in metric '{metric_key}' for '{label}'. Skipping plot line.")
                    continue
                if use_log_scale:
                    values_to_plot = np.maximum(values_to_plot, 1e-14)
                ax.plot(iterations, values_to_plot, label=label, lw=2)

            ax.set_xlabel('Iteration (T)')
            ax.set_ylabel('Value (log scale)' if use_log_scale else 'Value')
            if use_log_scale: ax.set_yscale('log')
            ax.set_title(title)
            ax.grid(True, which='both', linestyle='--', linewidth=0.5)
            ax.legend()

        plt.figtext(0.5, 0.01,
                    f"Config: n={self.n_points}, b={self.config['local_batch_size']}, "
                    f"LR0={self.config['learning_rate_eta0']}, $\\lambda$={self.config['l2_regularization_lambda']}",
                    ha="center", fontsize=10)
        plt.tight_layout(rect=[0, 0.05, 1, 0.97])
        plt.show()
