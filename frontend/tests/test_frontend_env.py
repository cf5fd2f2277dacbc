import unittest

from frontend.env import DEFAULT_API_BASE_URL, FrontendEnv, env_config, load_frontend_env


class FrontendEnvTests(unittest.TestCase):
    def test_defaults(self):
        config = load_frontend_env({})
        self.assertEqual(config.env, "development")
        self.assertTrue(config.is_dev)
        self.assertFalse(config.is_prod)
        self.assertTrue(config.use_mock_data)
        self.assertEqual(config.api_base_url, DEFAULT_API_BASE_URL)

    def test_production_without_flag_uses_api(self):
        config = load_frontend_env({"NODE_ENV": "production"})
        self.assertTrue(config.is_prod)
        self.assertFalse(config.is_dev)
        self.assertFalse(config.use_mock_data)

    def test_explicit_flag_wins(self):
        self.assertTrue(
            load_frontend_env({"NODE_ENV": "production", "NEXT_PUBLIC_USE_MOCK_DATA": "true"}).use_mock_data
        )
        self.assertFalse(
            load_frontend_env({"NODE_ENV": "development", "NEXT_PUBLIC_USE_MOCK_DATA": "false"}).use_mock_data
        )

    def test_only_true_enables_mock_data(self):
        for raw in ("1", "yes", "", "maybe"):
            with self.subTest(raw=raw):
                config = load_frontend_env({"NEXT_PUBLIC_USE_MOCK_DATA": raw})
                self.assertFalse(config.use_mock_data)
        self.assertTrue(load_frontend_env({"NEXT_PUBLIC_USE_MOCK_DATA": " TRUE "}).use_mock_data)

    def test_test_env_is_neither_dev_nor_prod(self):
        config = load_frontend_env({"NODE_ENV": "test"})
        self.assertFalse(config.is_dev)
        self.assertFalse(config.is_prod)
        self.assertFalse(config.use_mock_data)

    def test_api_base_url_override(self):
        config = load_frontend_env({"NEXT_PUBLIC_API_BASE_URL": "https://api.example.com"})
        self.assertEqual(config.api_base_url, "https://api.example.com")

    def test_as_dict_uses_frontend_keys(self):
        payload = load_frontend_env({}).as_dict()
        self.assertEqual(set(payload), {"useMockData", "apiBaseUrl", "env", "isDev", "isProd"})

    def test_module_config_is_frozen(self):
        self.assertIsInstance(env_config, FrontendEnv)
        with self.assertRaises(AttributeError):
            env_config.env = "production"


if __name__ == "__main__":
    unittest.main()
