"""Time series, controller-manager metrics source and one-shot polling."""